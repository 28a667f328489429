"""
Unit tests for the batch audit runner and the HTTP judge.
"""

import asyncio
import json

import httpx
import pytest
import pytest_asyncio

from quizpool.exceptions import JudgeError, JudgeThrottledError, JudgeUnavailableError
from quizpool.quality import AuditRunner, CoreVerdict, HttpJudge, ToolFailure, ToolFailureReason

PASS = {
    "answer_correct": True,
    "grammar_correct": True,
    "no_hallucination": True,
    "question_coherent": True,
}


class FakeJudge:
    """Judge scripted per item question: a list of responses or exceptions."""

    auditor = "fake"
    kind = "core"
    model = "fake-1"

    def __init__(self, script=None, default=None, delay=0.0):
        self.script = {k: list(v) for k, v in (script or {}).items()}
        self.default = default if default is not None else json.dumps(PASS)
        self.delay = delay
        self.calls = []
        self.active = 0
        self.max_active = 0

    async def judge(self, item):
        self.calls.append(item.question)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            steps = self.script.get(item.question)
            outcome = steps.pop(0) if steps else self.default
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        finally:
            self.active -= 1


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_runner(settings, sleeps):
    async def fake_sleep(seconds):
        sleeps.append(seconds)

    def _make(judge, **kwargs):
        return AuditRunner(judge, settings=settings, sleep=fake_sleep, **kwargs)

    return _make


def snapshots(make_snapshot, n):
    items = [make_snapshot() for _ in range(n)]
    for i, item in enumerate(items):
        item.question = f"q{i}"
    return items


class TestAuditRunner:
    @pytest.mark.asyncio
    async def test_one_verdict_per_item_in_order(self, make_runner, make_snapshot):
        items = snapshots(make_snapshot, 6)
        judge = FakeJudge(script={"q2": [json.dumps({**PASS, "answer_correct": False})]})

        verdicts = await make_runner(judge).evaluate(items)

        assert len(verdicts) == 6
        assert all(isinstance(v, CoreVerdict) for v in verdicts)
        assert [v.passes_gate for v in verdicts] == [True, True, False, True, True, True]
        assert verdicts[0].model == "fake-1"

    @pytest.mark.asyncio
    async def test_empty_batch(self, make_runner):
        assert await make_runner(FakeJudge()).evaluate([]) == []

    @pytest.mark.asyncio
    async def test_failures_are_isolated_per_item(self, make_runner, make_snapshot):
        items = snapshots(make_snapshot, 4)
        judge = FakeJudge(
            script={
                "q0": ["not json at all"],
                "q1": [JudgeError("400 bad request")],
                "q3": [RuntimeError("judge bug")],
            }
        )

        verdicts = await make_runner(judge).evaluate(items)

        assert verdicts[0].reason == ToolFailureReason.PARSE_ERROR
        assert verdicts[1].reason == ToolFailureReason.API_ERROR
        assert verdicts[2].passes_gate
        assert verdicts[3].reason == ToolFailureReason.API_ERROR

    @pytest.mark.asyncio
    async def test_throttling_is_retried_with_backoff(self, make_runner, make_snapshot, sleeps):
        items = snapshots(make_snapshot, 1)
        judge = FakeJudge(script={"q0": [JudgeThrottledError("429"), JudgeThrottledError("429")]})

        verdicts = await make_runner(judge, max_retries=3, initial_backoff=2.0).evaluate(items)

        assert verdicts[0].passes_gate
        assert sleeps == [2.0, 4.0]
        assert len(judge.calls) == 3

    @pytest.mark.asyncio
    async def test_exhausted_retries_become_tool_failure(self, make_runner, make_snapshot, sleeps):
        items = snapshots(make_snapshot, 1)
        judge = FakeJudge(script={"q0": [JudgeThrottledError("429")] * 4})

        verdicts = await make_runner(judge, max_retries=3, initial_backoff=2.0).evaluate(items)

        assert isinstance(verdicts[0], ToolFailure)
        assert verdicts[0].reason == ToolFailureReason.THROTTLED
        assert sleeps == [2.0, 4.0, 8.0]
        assert len(judge.calls) == 4

    @pytest.mark.asyncio
    async def test_timeout_reason(self, make_runner, make_snapshot):
        items = snapshots(make_snapshot, 1)
        judge = FakeJudge(script={"q0": [JudgeUnavailableError("slow", timed_out=True)]})

        verdicts = await make_runner(judge, max_retries=0).evaluate(items)

        assert verdicts[0].reason == ToolFailureReason.TIMEOUT

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, make_runner, make_snapshot):
        items = snapshots(make_snapshot, 12)
        judge = FakeJudge(delay=0.01)

        await make_runner(judge, concurrency=3).evaluate(items)

        assert judge.max_active <= 3
        assert len(judge.calls) == 12

    def test_backoff_schedule(self, make_runner):
        runner = make_runner(FakeJudge(), initial_backoff=2.0)
        assert [runner.backoff(a) for a in range(3)] == [2.0, 4.0, 8.0]


def mock_judge(handler, kind="core"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpJudge("http://judge.test/", auditor="http", kind=kind, model="m1", client=client)


class TestHttpJudge:
    @pytest.mark.asyncio
    async def test_posts_item_and_returns_body(self, make_snapshot):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, text=json.dumps(PASS))

        judge = mock_judge(handler)
        item = make_snapshot()

        raw = await judge.judge(item)
        await judge.close()

        assert json.loads(raw) == PASS
        assert seen["url"] == "http://judge.test/evaluate"
        assert seen["body"]["rubric"] == "core"
        assert seen["body"]["model"] == "m1"
        assert seen["body"]["item"]["id"] == str(item.id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,error",
        [(429, JudgeThrottledError), (503, JudgeUnavailableError), (400, JudgeError)],
    )
    async def test_status_codes_map_to_errors(self, make_snapshot, status, error):
        judge = mock_judge(lambda request: httpx.Response(status, text="nope"))

        with pytest.raises(error):
            await judge.judge(make_snapshot())
        await judge.close()

    @pytest.mark.asyncio
    async def test_timeout_is_marked(self, make_snapshot):
        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        judge = mock_judge(handler)

        with pytest.raises(JudgeUnavailableError) as exc_info:
            await judge.judge(make_snapshot())
        await judge.close()

        assert exc_info.value.timed_out


@pytest_asyncio.fixture
async def health_judge():
    judge = mock_judge(lambda request: httpx.Response(200, json={"status": "ok"}))
    yield judge
    await judge.close()


class TestHealthCheck:
    @pytest.mark.asyncio
    async def test_healthy(self, health_judge):
        assert await health_judge.health_check() is True
