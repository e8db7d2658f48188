import pytest

from quizgame.pipeline import QuestionPipeline, RateLimiter

from fakes import RecordingSleep


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def make_pipeline(sleep):
    def _make(llm, images=None, **kwargs):
        return QuestionPipeline(llm, images, rate_limiter=RateLimiter(0.1, sleep=sleep), **kwargs)

    return _make
