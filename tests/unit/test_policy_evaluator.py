"""
Tests for policy expression evaluation.

Tests the short-circuit and error-reporting rules:
- Booleans and policy functions
- AND stops at the first failure and reports its error
- OR stops at the first success; otherwise reports the last error
- NOT replaces errors with a generic denial
"""

import pytest

from autonym.core.errors import FORBIDDEN_MESSAGE, AutonymError, ErrorCode
from autonym.runtime.policy_evaluator import ALLOWED, PolicyEvaluator, PolicyOutcome
from autonym.runtime.views import RequestView, ResponseView
from autonym.specs.expression import compile_expression
from autonym.specs.resource import CrudMethod

# =============================================================================
# Test Fixtures
# =============================================================================


class Recorder:
    """Builds policies that record their calls."""

    def __init__(self):
        self.calls: list[str] = []

    def allow(self, name):
        async def policy(request, response, meta):
            self.calls.append(name)

        policy.__name__ = name
        return policy

    def deny(self, name, message=None):
        def policy(request, response, meta):
            self.calls.append(name)
            raise AutonymError(ErrorCode.FORBIDDEN, message or f"{name} denied")

        policy.__name__ = name
        return policy


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def evaluate():
    """Compile and evaluate an expression against a fresh create request."""
    evaluator = PolicyEvaluator("post")

    async def _evaluate(raw, meta=None):
        meta = meta if meta is not None else {}
        request = RequestView(CrudMethod.CREATE, meta, data={"title": "Hi"})
        return await evaluator.evaluate(
            compile_expression(raw), request, ResponseView(meta), meta
        )

    return _evaluate


# =============================================================================
# Leaves
# =============================================================================


class TestLeaves:
    """Tests for booleans and policy functions."""

    @pytest.mark.asyncio
    async def test_true_is_satisfied(self, evaluate):
        assert await evaluate(True) == ALLOWED

    @pytest.mark.asyncio
    async def test_false_reports_generic_error(self, evaluate):
        outcome = await evaluate(False)
        assert not outcome
        assert outcome.error.code == ErrorCode.FORBIDDEN
        assert outcome.error.message == FORBIDDEN_MESSAGE

    @pytest.mark.asyncio
    async def test_policy_that_returns_is_satisfied(self, evaluate, recorder):
        assert await evaluate(recorder.allow("a"))
        assert recorder.calls == ["a"]

    @pytest.mark.asyncio
    async def test_policy_that_raises_reports_its_error(self, evaluate):
        def not_found(request, response, meta):
            raise LookupError("nope")

        outcome = await evaluate(not_found)
        assert not outcome
        assert isinstance(outcome.error, LookupError)

    @pytest.mark.asyncio
    async def test_policy_receives_views_and_meta(self, evaluate):
        seen = {}

        def inspect_args(request, response, meta):
            seen["data"] = request.get_data()
            seen["populated"] = response.is_populated
            seen["meta"] = meta

        await evaluate(inspect_args, meta={"user": "u1"})
        assert seen == {"data": {"title": "Hi"}, "populated": False, "meta": {"user": "u1"}}

    @pytest.mark.asyncio
    async def test_policy_may_write_meta_for_later_policies(self, evaluate):
        def load_user(request, response, meta):
            meta["user"] = {"admin": True}

        def require_admin(request, response, meta):
            if not meta["user"]["admin"]:
                raise AutonymError(ErrorCode.FORBIDDEN, "Admins only.")

        assert await evaluate({"and": [load_user, require_admin]})


# =============================================================================
# Logical Operators
# =============================================================================


class TestAnd:
    @pytest.mark.asyncio
    async def test_all_satisfied(self, evaluate, recorder):
        assert await evaluate({"and": [recorder.allow("a"), recorder.allow("b")]})
        assert recorder.calls == ["a", "b"]

    @pytest.mark.asyncio
    async def test_stops_at_first_failure_with_its_error(self, evaluate, recorder):
        outcome = await evaluate(
            {"and": [recorder.allow("a"), recorder.deny("b"), recorder.deny("c")]}
        )
        assert not outcome
        assert outcome.error.message == "b denied"
        assert recorder.calls == ["a", "b"]

    @pytest.mark.asyncio
    async def test_empty_and_is_satisfied(self, evaluate):
        assert await evaluate({"and": []})


class TestOr:
    @pytest.mark.asyncio
    async def test_stops_at_first_success(self, evaluate, recorder):
        assert await evaluate(
            {"or": [recorder.deny("a"), recorder.allow("b"), recorder.allow("c")]}
        )
        assert recorder.calls == ["a", "b"]

    @pytest.mark.asyncio
    async def test_reports_last_error_when_none_satisfied(self, evaluate, recorder):
        outcome = await evaluate({"or": [recorder.deny("a"), recorder.deny("b")]})
        assert not outcome
        assert outcome.error.message == "b denied"
        assert recorder.calls == ["a", "b"]

    @pytest.mark.asyncio
    async def test_trailing_false_reports_generic_error(self, evaluate, recorder):
        outcome = await evaluate({"or": [recorder.deny("a"), False]})
        assert outcome.error.message == FORBIDDEN_MESSAGE

    @pytest.mark.asyncio
    async def test_empty_or_is_not_satisfied(self, evaluate):
        outcome = await evaluate({"or": []})
        assert not outcome
        with pytest.raises(AutonymError) as exc_info:
            outcome.raise_if_denied()
        assert exc_info.value.message == FORBIDDEN_MESSAGE


class TestNot:
    @pytest.mark.asyncio
    async def test_negated_failure_is_satisfied(self, evaluate, recorder):
        assert await evaluate({"not": recorder.deny("a")})

    @pytest.mark.asyncio
    async def test_negated_success_reports_generic_error(self, evaluate, recorder):
        outcome = await evaluate({"not": recorder.allow("a")})
        assert not outcome
        assert outcome.error.message == FORBIDDEN_MESSAGE

    @pytest.mark.asyncio
    async def test_double_negation_drops_specific_error(self, evaluate, recorder):
        outcome = await evaluate({"not": {"not": recorder.deny("a", "Specific.")}})
        assert not outcome
        assert outcome.error.message == FORBIDDEN_MESSAGE

    @pytest.mark.asyncio
    async def test_nested_combination(self, evaluate, recorder):
        expression = {
            "and": [
                {"or": [recorder.deny("a"), recorder.allow("b")]},
                {"not": False},
                recorder.deny("c", "Not yours."),
            ]
        }
        outcome = await evaluate(expression)
        assert outcome.error.message == "Not yours."
        assert recorder.calls == ["a", "b", "c"]


class TestPolicyOutcome:
    def test_raise_if_denied_raises_reported_error(self):
        error = ValueError("x")
        with pytest.raises(ValueError):
            PolicyOutcome(False, error).raise_if_denied()

    def test_allowed_does_not_raise(self):
        ALLOWED.raise_if_denied()

    @pytest.mark.asyncio
    async def test_unknown_operand_raises_type_error(self):
        meta = {}
        with pytest.raises(TypeError):
            await PolicyEvaluator("post").evaluate(
                "yes", RequestView(CrudMethod.FIND, meta), ResponseView(meta), meta
            )
