"""Sequential execution of runner definitions."""

import asyncio
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from courier.auth import handle_digest_auth
from courier.config import (
    RequestResult,
    RequestStatus,
    RunEvent,
    RunnerDefinition,
    RunnerRequest,
    RunRecord,
    RunState,
    Settings,
)
from courier.errors import CourierError, RunnerAlreadyRunningError, RunnerValidationError, TransportError
from courier.runner.builder import PreparedRequest, RequestBuilder
from courier.runner.state import CancellationToken, RunStateMachine
from courier.scripting import ResponseContext, ScriptExecutor, Unset, applied_values
from courier.storage.base import (
    CollectionRepository,
    EnvironmentRepository,
    OverridesRepository,
    RunnerRepository,
    VariableRepository,
)
from courier.transport import Transport, TransportResponse
from courier.utils import logger, now_ms, sanitize_url
from courier.variables import VariableProcessor

STOPPED_BY_USER = "Execution stopped by user"
SKIPPED_AFTER_ERROR = "Skipped due to previous error"


def _append_script_error(result: RequestResult, errors: List[str]) -> None:
    messages = [result.script_error] if result.script_error else []
    messages.extend(errors)
    result.script_error = "; ".join(messages) or None


Listener = Callable[[str, Any], None]
ProgressCallback = Callable[[int, int, RequestResult], None]


class RunnerService:
    """Runs a runner's requests one after another, chaining variables.

    Variable precedence, lowest first: collection variables, active
    environment variables, variables set by earlier scripts in the same run.
    Only one run may be active per instance.
    """

    def __init__(
        self,
        runners: RunnerRepository,
        collections: CollectionRepository,
        environments: EnvironmentRepository,
        variables: VariableRepository,
        overrides: OverridesRepository,
        transport: Transport,
        settings: Optional[Settings] = None,
        script_executor: Optional[ScriptExecutor] = None,
        processor: Optional[VariableProcessor] = None,
    ):
        self.runners = runners
        self.collections = collections
        self.environments = environments
        self.variables = variables
        self.overrides = overrides
        self.transport = transport
        self.settings = settings or Settings()
        self.processor = processor or VariableProcessor()
        self.builder = RequestBuilder(self.processor)
        self.scripts = script_executor or ScriptExecutor(timeout_ms=self.settings.script_timeout_ms)

        self._state = RunStateMachine()
        self._listeners: List[Listener] = []

    @classmethod
    def from_store(cls, store, transport: Transport, **kwargs) -> "RunnerService":
        """Build a service over a :class:`~courier.storage.MemoryStore`."""
        return cls(
            runners=store.runners,
            collections=store.collections,
            environments=store.environments,
            variables=store.variables,
            overrides=store.overrides,
            transport=transport,
            **kwargs,
        )

    # Runner CRUD

    async def get_all_runners(self) -> List[RunnerDefinition]:
        return await self.runners.get_all()

    async def get_runner(self, runner_id: str) -> Optional[RunnerDefinition]:
        return await self.runners.get_by_id(runner_id)

    async def create_runner(self, runner: Union[RunnerDefinition, Dict[str, Any]]) -> RunnerDefinition:
        if not isinstance(runner, RunnerDefinition):
            runner = RunnerDefinition.model_validate(runner)
        created = await self.runners.add(runner)
        logger.info(f'Runner "{created.name}" created')
        return created

    async def update_runner(self, runner_id: str, updates: Dict[str, Any]) -> Optional[RunnerDefinition]:
        updated = await self.runners.update(runner_id, updates)
        if updated:
            logger.info(f'Runner "{updated.name}" saved')
        return updated

    async def delete_runner(self, runner_id: str) -> bool:
        deleted = await self.runners.delete(runner_id)
        if deleted:
            logger.info("Runner deleted")
        return deleted

    # Execution

    def is_executing(self) -> bool:
        return self._state.is_running

    @property
    def state(self) -> RunState:
        return self._state.state

    def stop_execution(self) -> None:
        """Ask the active run to stop before its next request."""
        if self._state.stop():
            logger.info("Stopping runner...")

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def execute_runner(self, runner_id: str, on_progress: Optional[ProgressCallback] = None) -> RunRecord:
        """Execute a stored runner and stamp its ``last_run``.

        Raises:
            RunnerAlreadyRunningError: Another run is active on this service.
            RunnerValidationError: Unknown runner or no requests.
        """
        if self.is_executing():
            raise RunnerAlreadyRunningError(self._state.run_id)

        runner = await self.runners.get_by_id(runner_id)
        if runner is None:
            raise RunnerValidationError("Runner not found")
        self._validate(runner)

        token = self._state.start(runner_id)
        try:
            return await self._run(runner, token, on_progress)
        finally:
            await self.runners.update_last_run(runner_id)

    async def execute_runner_data(
        self,
        definition: Union[RunnerDefinition, Dict[str, Any]],
        on_progress: Optional[ProgressCallback] = None,
    ) -> RunRecord:
        """Execute an unsaved runner definition."""
        if self.is_executing():
            raise RunnerAlreadyRunningError(self._state.run_id)
        if not isinstance(definition, RunnerDefinition):
            definition = RunnerDefinition.model_validate(definition)
        self._validate(definition)

        token = self._state.start(definition.id)
        return await self._run(definition, token, on_progress)

    def _validate(self, definition: RunnerDefinition) -> None:
        if not definition.requests:
            raise RunnerValidationError("Runner has no requests to execute")

    async def _run(
        self,
        definition: RunnerDefinition,
        token: CancellationToken,
        on_progress: Optional[ProgressCallback],
    ) -> RunRecord:
        requests = definition.requests
        total = len(requests)
        record = RunRecord(
            runner_id=definition.id,
            runner_name=definition.name,
            start_time=now_ms(),
            total_requests=total,
        )
        runtime_variables: Dict[str, str] = {}
        final_state = RunState.COMPLETED

        try:
            logger.info(f"Running {definition.name} ({total} requests)")
            self._notify(RunEvent.RUN_STARTED, {"runner_id": definition.id, "total": total})

            for index, request in enumerate(requests):
                if token.is_cancelled:
                    self._mark_remaining_skipped(record, requests, index, STOPPED_BY_USER)
                    final_state = RunState.STOPPED
                    break

                result = await self._execute_request(request, runtime_variables, index)
                record.add(result)

                if result.status == RequestStatus.SUCCESS:
                    runtime_variables.update(result.variables_set)
                    record.variables_set.update(result.variables_set)

                self._report_progress(on_progress, index, total, result)
                self._notify(RunEvent.REQUEST_COMPLETED, {"index": index, "result": result})

                if result.status != RequestStatus.SUCCESS and definition.options.stop_on_error:
                    self._mark_remaining_skipped(record, requests, index + 1, SKIPPED_AFTER_ERROR)
                    final_state = RunState.FAILED_FAST
                    break

                if definition.options.delay_ms > 0 and index < total - 1:
                    await asyncio.sleep(definition.options.delay_ms / 1000)
        except BaseException:
            final_state = RunState.STOPPED
            raise
        finally:
            record.seal(final_state, now_ms())
            self._state.finish(final_state)
            logger.info(
                f"Run finished ({final_state.value}): {record.passed} passed, "
                f"{record.failed} failed, {record.skipped} skipped in {record.total_time_ms}ms"
            )
            self._notify(RunEvent.RUN_COMPLETED, record)

        return record

    def _mark_remaining_skipped(
        self, record: RunRecord, requests: List[RunnerRequest], start: int, reason: str
    ) -> None:
        for index in range(start, len(requests)):
            request = requests[index]
            record.add(
                RequestResult(
                    index=index,
                    collection_id=request.collection_id,
                    endpoint_id=request.endpoint_id,
                    name=request.name,
                    method=request.method,
                    path=request.path,
                    status=RequestStatus.SKIPPED,
                    error=reason,
                )
            )

    async def _build_variables(self, collection_id: str, runtime_variables: Mapping[str, str]) -> Dict[str, str]:
        variables: Dict[str, str] = {}
        try:
            variables.update(await self.variables.get_variables_for_collection(collection_id))
        except Exception as e:
            logger.warning(f"Continuing without collection variables: {e}")
        try:
            variables.update(await self.environments.get_active_environment_variables())
        except Exception as e:
            logger.warning(f"Continuing without environment variables: {e}")
        variables.update(runtime_variables)
        return variables

    async def _prepare(self, request: RunnerRequest, variables: Mapping[str, str]) -> PreparedRequest:
        collection = await self.collections.get_by_id(request.collection_id)
        if collection is None:
            raise CourierError(f"Collection not found: {request.collection_id}")
        endpoint = collection.find_endpoint(request.endpoint_id)
        if endpoint is None:
            raise CourierError(f"Endpoint not found: {request.endpoint_id}")
        overrides = await self.overrides.get_overrides(collection.id, endpoint.id)

        self.processor.clear_dynamic_cache()
        return self.builder.build(collection, endpoint, variables, overrides, self.settings)

    async def _dispatch(self, prepared: PreparedRequest) -> TransportResponse:
        async def send(authorization: Optional[str]) -> TransportResponse:
            headers = dict(prepared.headers)
            if authorization:
                headers["Authorization"] = authorization
            return await self.transport.dispatch(
                prepared.method,
                prepared.url,
                headers,
                prepared.body,
                timeout=prepared.timeout,
                proxy=prepared.proxy,
            )

        if prepared.digest is not None:
            return await handle_digest_auth(send, prepared.digest, prepared.method, prepared.url)
        return await send(None)

    async def _execute_request(
        self, request: RunnerRequest, runtime_variables: Mapping[str, str], index: int
    ) -> RequestResult:
        start = now_ms()
        result = RequestResult(
            index=index,
            collection_id=request.collection_id,
            endpoint_id=request.endpoint_id,
            name=request.name,
            method=request.method,
            path=request.path,
        )

        try:
            variables = await self._build_variables(request.collection_id, runtime_variables)
            prepared = await self._prepare(request, variables)
            result.method = result.method or prepared.method

            if request.pre_request_script:
                await self._run_pre_request(request.pre_request_script, prepared, variables, result)
            result.url = prepared.url

            logger.debug(f"[{index + 1}] {prepared.method} {sanitize_url(prepared.url)}")
            response = await self._dispatch(prepared)

            result.status = RequestStatus.SUCCESS
            result.status_code = response.status
            result.status_text = response.status_text
            result.response_time_ms = now_ms() - start
            result.body = response.data
            result.headers = response.headers
            result.cookies = response.cookies

            if request.post_response_script:
                await self._run_post_response(request.post_response_script, prepared, response, start, variables, result)
        except TransportError as e:
            result.status = RequestStatus.ERROR
            result.error = e.message or "Request failed"
            result.status_code = e.status
            result.status_text = e.status_text
            result.response_time_ms = now_ms() - start
            result.body = e.data
            result.headers = e.headers
            logger.debug(f"[{index + 1}] failed: {result.error}")
        except Exception as e:
            result.status = RequestStatus.ERROR
            result.error = str(e)
            result.response_time_ms = now_ms() - start
            logger.debug(f"[{index + 1}] failed: {type(e).__name__}: {e}")

        return result

    async def _run_pre_request(
        self,
        script: str,
        prepared: PreparedRequest,
        variables: Dict[str, str],
        result: RequestResult,
    ) -> None:
        outcome = await asyncio.to_thread(
            self.scripts.execute_pre_request, script, prepared.to_script_context(), variables
        )
        result.logs.extend(outcome.logs)
        self._fold_environment(outcome.modified_environment, variables, result)
        if outcome.success:
            prepared.apply(outcome.modified_request)
        else:
            _append_script_error(result, outcome.errors)

    async def _run_post_response(
        self,
        script: str,
        prepared: PreparedRequest,
        response: TransportResponse,
        start: int,
        variables: Dict[str, str],
        result: RequestResult,
    ) -> None:
        response_ctx = ResponseContext(
            status=response.status,
            status_text=response.status_text,
            headers=dict(response.headers),
            body=response.data,
            timings={"start_time": start, "total": response.elapsed_ms},
            cookies=list(response.cookies),
        )
        outcome = await asyncio.to_thread(
            self.scripts.execute_test, script, prepared.to_script_context(), response_ctx, variables
        )
        result.logs.extend(outcome.logs)
        result.test_results.extend(outcome.test_results)
        self._fold_environment(outcome.modified_environment, variables, result)
        if not outcome.success:
            _append_script_error(result, outcome.errors)

    def _fold_environment(self, diff, variables: Dict[str, str], result: RequestResult) -> None:
        """Apply a script's diff to this request's variables and record the
        assigned values; unset entries never reach ``variables_set``."""
        for name, change in diff.items():
            if isinstance(change, Unset):
                variables.pop(name, None)
                result.variables_set.pop(name, None)
        values = applied_values(diff)
        variables.update(values)
        result.variables_set.update(values)

    def _report_progress(
        self, on_progress: Optional[ProgressCallback], index: int, total: int, result: RequestResult
    ) -> None:
        if on_progress is None:
            return
        try:
            on_progress(index, total, result)
        except Exception as e:
            logger.debug(f"Progress callback failed: {e}")

    def _notify(self, event: RunEvent, data: Any) -> None:
        for listener in list(self._listeners):
            try:
                listener(event.value, data)
            except Exception as e:
                logger.debug(f"Runner listener failed on {event.value}: {e}")
