import pytest

from courier.errors import ScriptAssertionError, ScriptTimeoutError
from courier.scripting import ScriptState, build_expect, build_test


@pytest.fixture
def state():
    return ScriptState()


@pytest.fixture
def expect(state):
    return build_expect(state)


class TestMatchers:
    def test_to_be_uses_typed_equality_for_scalars(self, expect, state):
        expect(200).to_be(200)
        expect("a").to_be("a")
        with pytest.raises(ScriptAssertionError):
            expect(1).to_be("1")
        with pytest.raises(ScriptAssertionError):
            expect(1).to_be(True)
        assert [r.passed for r in state.test_results] == [True, True, False, False]

    def test_to_be_uses_identity_for_objects(self, expect):
        value = {"a": 1}
        expect(value).to_be(value)
        with pytest.raises(ScriptAssertionError):
            expect({"a": 1}).to_be({"a": 1})

    def test_to_equal_is_structural(self, expect):
        expect({"a": [1, 2]}).to_equal({"a": [1, 2]})
        with pytest.raises(ScriptAssertionError):
            expect([1, 2]).to_equal([2, 1])

    def test_to_equal_is_key_order_sensitive(self, expect):
        with pytest.raises(ScriptAssertionError):
            expect({"a": 1, "b": 2}).to_equal({"b": 2, "a": 1})

    def test_to_contain(self, expect):
        expect("hello world").to_contain("world")
        expect([1, 2, 3]).to_contain(2)
        with pytest.raises(ScriptAssertionError, match="requires a list or string"):
            expect(5).to_contain(5)

    def test_defined_and_none(self, expect):
        expect(0).to_be_defined()
        expect(None).to_be_undefined()
        expect(None).to_be_none()
        with pytest.raises(ScriptAssertionError):
            expect(None).to_be_defined()

    def test_truthiness(self, expect):
        expect([1]).to_be_truthy()
        expect("").to_be_falsy()
        with pytest.raises(ScriptAssertionError):
            expect(0).to_be_truthy()

    def test_comparisons(self, expect):
        expect(5).to_be_greater_than(4)
        expect(5).to_be_greater_than_or_equal(5)
        expect(4).to_be_less_than(5)
        expect(4).to_be_less_than_or_equal(4)
        with pytest.raises(ScriptAssertionError):
            expect("a").to_be_greater_than(1)

    def test_to_have_property(self, expect):
        expect({"id": 1}).to_have_property("id")
        expect({"id": 1}).to_have_property("id", 1)
        with pytest.raises(ScriptAssertionError, match='Expected property "id" to be 2, but got 1'):
            expect({"id": 1}).to_have_property("id", 2)
        with pytest.raises(ScriptAssertionError, match='to have property "name"'):
            expect({"id": 1}).to_have_property("name")

    def test_to_have_length(self, expect):
        expect([1, 2]).to_have_length(2)
        with pytest.raises(ScriptAssertionError):
            expect(5).to_have_length(1)

    def test_to_match(self, expect):
        expect("order-123").to_match(r"^order-\d+$")
        with pytest.raises(ScriptAssertionError):
            expect("x").to_match(r"\d")
        with pytest.raises(ScriptAssertionError, match="requires a string"):
            expect(1).to_match(r"\d")

    def test_negation(self, expect, state):
        expect(1).not_.to_be(2)
        expect([1]).not_.to_contain(3)
        with pytest.raises(ScriptAssertionError, match="not to be"):
            expect(1).not_.to_be(1)
        assert [r.passed for r in state.test_results] == [True, True, False]

    def test_expired_state_refuses_calls(self, expect, state):
        state.expire()
        with pytest.raises(ScriptTimeoutError):
            expect(1).to_be(1)
        assert state.test_results == []


class TestNamedBlocks:
    def test_passing_block(self, state):
        test = build_test(state)
        assert test("status ok", lambda: None) is True
        assert state.test_results[-1].message == "status ok"
        assert state.test_results[-1].passed

    def test_failed_assertion_inside_block_is_recorded_not_raised(self, state):
        test = build_test(state)
        expect = build_expect(state)

        def body():
            expect(1).to_be(2)

        assert test("numbers", body) is False
        assert state.test_results[-1].message == "numbers"
        assert not state.test_results[-1].passed

    def test_other_exception_is_labelled(self, state):
        test = build_test(state)

        def body():
            raise KeyError("id")

        assert test("lookup", body) is False
        assert state.test_results[-1].message == "lookup (KeyError: 'id')"
