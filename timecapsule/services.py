import logging
from dataclasses import dataclass

from timecapsule.auth import JWTTokenVerifier
from timecapsule.clock import SystemClock
from timecapsule.config import Settings
from timecapsule.database import init_db, make_engine, make_session_factory
from timecapsule.ingestion import ContentIngestion
from timecapsule.lifecycle import CapsuleLifecycle
from timecapsule.media import make_object_store
from timecapsule.sentiment import LexiconSentimentScorer
from timecapsule.store import CapsuleStore


@dataclass
class Services:
    settings: Settings
    clock: object
    store: CapsuleStore
    object_store: object
    lifecycle: CapsuleLifecycle
    ingestion: ContentIngestion
    verifier: JWTTokenVerifier


def configure_logging(settings: Settings):
    logging.basicConfig(level=settings.log_level.upper())


def build_services(settings: Settings, clock=None, scorer=None, object_store=None, engine=None) -> Services:
    """Wire every component from one Settings object; collaborators can be swapped in."""
    clock = clock or SystemClock()
    engine = engine or make_engine(settings)
    init_db(engine)
    store = CapsuleStore(make_session_factory(engine))
    object_store = object_store or make_object_store(settings)
    return Services(
        settings=settings,
        clock=clock,
        store=store,
        object_store=object_store,
        lifecycle=CapsuleLifecycle(store, clock),
        ingestion=ContentIngestion(
            store,
            clock,
            object_store,
            scorer or LexiconSentimentScorer(),
            max_upload_bytes=settings.max_upload_bytes,
        ),
        verifier=JWTTokenVerifier(settings),
    )
