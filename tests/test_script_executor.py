import threading

import pytest

from courier.config import LogLevel
from courier.scripting import (
    RequestContext,
    ResponseContext,
    ScriptExecutor,
    ScriptOutcome,
    SetValue,
    Unset,
)


@pytest.fixture
def executor():
    return ScriptExecutor(timeout_ms=2000)


@pytest.fixture
def request_ctx():
    return RequestContext(
        url="https://api.example.com/users",
        method="POST",
        headers={"Accept": "application/json"},
        body={"name": "alice"},
    )


@pytest.fixture
def response_ctx():
    return ResponseContext(
        status=200,
        status_text="OK",
        headers={"Content-Type": "application/json"},
        body={"token": "abc123", "items": [1, 2, 3]},
    )


class TestPreRequest:
    def test_empty_script_is_a_noop(self, executor, request_ctx):
        result = executor.execute_pre_request("   \n", request_ctx, {})
        assert result.success
        assert result.modified_request is request_ctx
        assert result.modified_environment == {}

    def test_rewrites_request(self, executor, request_ctx):
        script = (
            'request.headers["X-Token"] = environment.get("token")\n'
            'request.url = request.url + "?page=2"\n'
            'request.method = "put"\n'
            'request.body["name"] = "bob"\n'
        )
        result = executor.execute_pre_request(script, request_ctx, {"token": "t1"})
        assert result.success, result.errors
        assert result.modified_request.url == "https://api.example.com/users?page=2"
        assert result.modified_request.method == "PUT"
        assert result.modified_request.headers["X-Token"] == "t1"
        assert result.modified_request.body == {"name": "bob"}
        assert "X-Token" not in request_ctx.headers

    def test_failure_returns_original_request_and_partial_diff(self, executor, request_ctx):
        script = 'environment.set("before", "yes")\nrequest.url = "changed"\nx = 1 / 0\n'
        result = executor.execute_pre_request(script, request_ctx, {})
        assert not result.success
        assert result.errors == ["ZeroDivisionError: division by zero"]
        assert result.modified_request is request_ctx
        assert result.modified_environment == {"before": SetValue("yes")}

    def test_unknown_request_field_is_rejected(self, executor, request_ctx):
        result = executor.execute_pre_request('request.timeout = 5', request_ctx, {})
        assert not result.success
        assert result.errors[0].startswith("AttributeError")

    def test_no_expect_in_pre_request(self, executor, request_ctx):
        result = executor.execute_pre_request("expect(1).to_be(1)", request_ctx, {})
        assert not result.success
        assert result.errors[0].startswith("NameError")


class TestEnvironment:
    def test_set_get_and_unset(self, executor, request_ctx, response_ctx):
        script = (
            'environment.set("token", response.body["token"])\n'
            'environment.set("count", 3)\n'
            'environment.set("flag", True)\n'
            'environment.unset("old")\n'
            'console.log(environment.get("token"), environment.get("old"), environment.has("count"))\n'
        )
        result = executor.execute_test(script, request_ctx, response_ctx, {"old": "x"})
        assert result.success, result.errors
        assert result.modified_environment == {
            "token": SetValue("abc123"),
            "count": SetValue("3"),
            "flag": SetValue("true"),
            "old": Unset(),
        }
        assert result.logs[0].message == "abc123 None True"

    def test_none_value_is_rejected(self, executor, request_ctx, response_ctx):
        result = executor.execute_test('environment.set("a", None)', request_ctx, response_ctx, {})
        assert not result.success
        assert result.errors == ["ValueError: Environment variable value cannot be None"]

    def test_non_string_name_is_rejected(self, executor, request_ctx, response_ctx):
        result = executor.execute_test('environment.set(1, "a")', request_ctx, response_ctx, {})
        assert result.errors == ["TypeError: Environment variable name must be a string"]


class TestConsole:
    def test_levels_and_object_rendering(self, executor, request_ctx, response_ctx):
        script = (
            'console.log("plain", 1)\n'
            'console.warn("careful")\n'
            'console.error({"a": 1})\n'
            'console.debug("dbg")\n'
        )
        result = executor.execute_test(script, request_ctx, response_ctx, {})
        assert [(entry.level, entry.message) for entry in result.logs] == [
            (LogLevel.INFO, "plain 1"),
            (LogLevel.WARN, "careful"),
            (LogLevel.ERROR, '{\n  "a": 1\n}'),
            (LogLevel.DEBUG, "dbg"),
        ]
        assert all(entry.timestamp > 0 for entry in result.logs)

    def test_print_goes_to_the_log(self, executor, request_ctx, response_ctx):
        result = executor.execute_test('print("hello", response.status)', request_ctx, response_ctx, {})
        assert result.success, result.errors
        assert result.logs[0].message == "hello 200"


class TestTestScripts:
    def test_assertions_are_recorded(self, executor, request_ctx, response_ctx):
        script = (
            "expect(response.status).to_be(200)\n"
            'expect(response.body).to_have_property("token")\n'
            'expect(response.json()["items"]).to_have_length(3)\n'
            'expect(response.header("content-type")).to_contain("json")\n'
        )
        result = executor.execute_test(script, request_ctx, response_ctx, {})
        assert result.success, result.errors
        assert result.modified_request is None
        assert len(result.test_results) == 4
        assert all(r.passed for r in result.test_results)

    def test_failed_assertion_aborts_script(self, executor, request_ctx, response_ctx):
        script = 'expect(response.status).to_be(201)\nenvironment.set("after", "x")\n'
        result = executor.execute_test(script, request_ctx, response_ctx, {})
        assert not result.success
        assert result.errors == ["Assertion failed: Expected 200 to be 201"]
        assert [r.passed for r in result.test_results] == [False]
        assert "after" not in result.modified_environment

    def test_named_blocks_do_not_abort(self, executor, request_ctx, response_ctx):
        script = (
            'test("created", lambda: expect(response.status).to_be(201))\n'
            'test("ok", lambda: expect(response.status).to_be(200))\n'
            'environment.set("after", "x")\n'
        )
        result = executor.execute_test(script, request_ctx, response_ctx, {})
        assert result.success, result.errors
        messages = [(r.message, r.passed) for r in result.test_results]
        assert ("created", False) in messages
        assert ("ok", True) in messages
        assert result.modified_environment["after"] == SetValue("x")

    def test_response_is_read_only(self, executor, request_ctx, response_ctx):
        result = executor.execute_test("response.status = 500", request_ctx, response_ctx, {})
        assert not result.success
        assert response_ctx.status == 200

    def test_response_body_mutation_does_not_leak(self, executor, request_ctx, response_ctx):
        result = executor.execute_test('response.body["token"] = "x"', request_ctx, response_ctx, {})
        assert result.success, result.errors
        assert response_ctx.body["token"] == "abc123"

    def test_request_is_readable(self, executor, request_ctx, response_ctx):
        script = 'expect(request.headers["Accept"]).to_be("application/json")\nexpect(request.method).to_be("POST")'
        result = executor.execute_test(script, request_ctx, response_ctx, {})
        assert result.success, result.errors

    def test_request_is_read_only(self, executor, request_ctx, response_ctx):
        result = executor.execute_test('request.url = "https://elsewhere"', request_ctx, response_ctx, {})
        assert not result.success
        assert result.errors == ["AttributeError: request is read-only in test scripts"]

        result = executor.execute_test('request.headers["X"] = "1"', request_ctx, response_ctx, {})
        assert not result.success
        assert result.errors[0].startswith("TypeError")
        assert "X" not in request_ctx.headers

    def test_utilities(self, executor, request_ctx, response_ctx):
        script = (
            'expect(btoa("user:pass")).to_be("dXNlcjpwYXNz")\n'
            'expect(atob("dXNlcjpwYXNz")).to_be("user:pass")\n'
            'expect(url_encode("a b&c")).to_be("a%20b%26c")\n'
            'expect(json.loads(json.dumps({"a": 1}))["a"]).to_be(1)\n'
            "expect(math.floor(2.7)).to_be(2)\n"
            "expect(time_ms()).to_be_greater_than(0)\n"
        )
        result = executor.execute_test(script, request_ctx, response_ctx, {})
        assert result.success, result.errors
        assert len(result.test_results) == 6


class TestSandbox:
    def test_syntax_error(self, executor, request_ctx):
        result = executor.execute_pre_request("x = = 1", request_ctx, {})
        assert not result.success
        assert result.errors[0].startswith("SyntaxError")

    def test_underscore_names_are_rejected(self, executor, request_ctx):
        result = executor.execute_pre_request("request.__class__", request_ctx, {})
        assert not result.success
        assert result.errors[0].startswith("SyntaxError")

    def test_imports_are_unavailable(self, executor, request_ctx):
        result = executor.execute_pre_request("import os", request_ctx, {})
        assert not result.success

    def test_open_is_unavailable(self, executor, request_ctx):
        result = executor.execute_pre_request('open("/etc/passwd")', request_ctx, {})
        assert not result.success
        assert result.errors[0].startswith("NameError")

    def test_timeout(self, request_ctx, response_ctx):
        executor = ScriptExecutor(timeout_ms=200)
        result = executor.execute_test("while True:\n    pass\n", request_ctx, response_ctx, {})
        assert not result.success
        assert result.errors == ["Script execution timeout (200ms exceeded)"]

    def test_timeout_keeps_results_recorded_so_far(self, request_ctx, response_ctx):
        executor = ScriptExecutor(timeout_ms=200)
        script = 'environment.set("started", "1")\nwhile True:\n    pass\n'
        result = executor.execute_test(script, request_ctx, response_ctx, {})
        assert result.modified_environment == {"started": SetValue("1")}

    @pytest.mark.parametrize(
        "handler",
        ["except:", "except BaseException:", "except (ValueError, BaseException) as e:"],
    )
    def test_catch_all_handlers_are_rejected(self, executor, request_ctx, handler):
        script = f"try:\n    x = 1\n{handler}\n    pass\n"
        result = executor.execute_pre_request(script, request_ctx, {})
        assert not result.success
        assert result.errors[0].startswith("SyntaxError")
        assert "Catching every exception is not allowed" in result.errors[0]

    def test_except_exception_is_allowed(self, executor, request_ctx):
        script = 'try:\n    x = 1 / 0\nexcept Exception:\n    console.log("caught")\n'
        result = executor.execute_pre_request(script, request_ctx, {})
        assert result.success, result.errors
        assert result.logs[0].message == "caught"

    def test_timeout_stops_a_script_that_keeps_looping(self, request_ctx, response_ctx):
        executor = ScriptExecutor(timeout_ms=200)
        script = (
            "while True:\n"
            "    try:\n"
            "        while True:\n"
            "            pass\n"
            "    except Exception:\n"
            "        pass\n"
            "    finally:\n"
            "        n = 0\n"
            "        while n >= 0:\n"
            "            n += 1\n"
        )
        result = executor.execute_test(script, request_ctx, response_ctx, {})

        assert result.errors == ["Script execution timeout (200ms exceeded)"]
        for worker in [t for t in threading.enumerate() if t.name == "courier-script"]:
            worker.join(1)
            assert not worker.is_alive()


class RecordingHost:
    def __init__(self, outcome):
        self.outcome = outcome
        self.calls = []

    def execute(self, bindings, source, timeout_ms):
        self.calls.append((sorted(bindings), source, timeout_ms))
        return self.outcome


class TestInjectedHost:
    def test_bindings_passed_to_host(self, request_ctx, response_ctx):
        host = RecordingHost(ScriptOutcome(ok=True))
        executor = ScriptExecutor(host=host, timeout_ms=50)
        executor.execute_test("pass", request_ctx, response_ctx, {})
        names, source, timeout_ms = host.calls[0]
        assert names == ["console", "environment", "expect", "request", "response", "test"]
        assert (source, timeout_ms) == ("pass", 50)

    def test_host_timeout_is_reported(self, request_ctx):
        executor = ScriptExecutor(host=RecordingHost(ScriptOutcome(ok=False, timed_out=True)), timeout_ms=75)
        result = executor.execute_pre_request("pass", request_ctx, {})
        assert result.errors == ["Script execution timeout (75ms exceeded)"]
        assert result.modified_request is request_ctx
