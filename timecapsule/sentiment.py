from afinn import Afinn


class LexiconSentimentScorer:
    """AFINN word valences (-5..+5) summed over the text, 0 for empty text."""

    def __init__(self, language: str = "en", emoticons: bool = False):
        self._afinn = Afinn(language=language, emoticons=emoticons)

    def score(self, text: str) -> float:
        if not text:
            return 0
        return self._afinn.score(text)
