from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

import reaffect
from reaffect import coroutine as co
from reaffect.coroutine import Continuation, ContinuationController
from reaffect.errors import ContinuationReuseFailure, ContinuationUnavailable, UnhandledEffect


def doubling_body():
    return 2 * (yield co.escape(lambda k: k))


class TestMultiShot:
    def test_resume_many_times(self):
        k = co.capture(doubling_body)
        assert isinstance(k, Continuation)
        assert k(2) == 4
        assert k(3) == 6
        assert k(4) == 8
        assert k.invocations == 3
        assert k.depth == 1

    def test_resumptions_do_not_share_local_state(self):
        def body():
            seen = []
            seen.append((yield co.escape(lambda k: k)))
            return list(seen)

        k = co.capture(body)
        assert k(1) == [1]
        assert k(2) == [2]

    def test_handlers_are_not_reinvoked_on_replay(self):
        calls = []

        def get():
            calls.append("get")
            return 10

        def body():
            a = yield co.perform("get")
            b = yield co.escape(lambda k: k)
            return a + b

        k = co.capture({"get": get}, body)
        assert calls == ["get"]
        assert k(1) == 11
        assert k(2) == 12
        assert calls == ["get"]

    def test_ambient_performs_are_not_reinvoked_on_replay(self):
        ticks = []

        def tick():
            ticks.append(1)
            return len(ticks)

        def body():
            a = reaffect.perform("tick")
            x = yield co.escape(lambda k: k)
            return (a, x)

        k = co.capture({"tick": tick}, body)
        assert [k(10), k(20), k(30)] == [(1, 10), (1, 20), (1, 30)]
        assert len(ticks) == 1

    def test_ambient_performs_after_the_suspension_point_run_each_time(self):
        counter = []

        def inner():
            counter.append(1)
            return len(counter)

        def body():
            a = yield co.perform("outer")
            x = yield co.escape(lambda k: k)
            b = reaffect.perform("inner")
            return a, x, b

        handlers = {"outer": lambda: reaffect.perform("inner") * 10, "inner": inner}
        k = co.capture(handlers, body)
        assert k(1) == (10, 1, 2)
        assert k(2) == (10, 2, 3)
        assert len(counter) == 3

    def test_ambient_perform_errors_are_replayed(self):
        calls = []

        def flaky():
            calls.append(1)
            raise KeyError("flaky")

        def body():
            try:
                reaffect.perform("flaky")
            except KeyError:
                caught = True
            return caught, (yield co.escape(lambda k: k))

        k = co.capture({"flaky": flaky}, body)
        assert k("a") == (True, "a")
        assert k("b") == (True, "b")
        assert calls == [1]

    def test_body_code_before_the_suspension_point_runs_on_each_call(self):
        log = []

        def body():
            log.append("start")
            return (yield co.escape(lambda k: k))

        k = co.capture(body)
        assert (k(2), k(3)) == (2, 3)
        assert log == ["start", "start", "start"]

    def test_continuation_spans_nested_scopes(self):
        def inner(scope):
            x = yield co.escape(lambda k: k, scope=scope)
            return x + 1

        def outer():
            y = yield co.with_handlers({}, inner, reaffect.current_context())
            return y + 100

        k = co.capture(outer)
        assert k.depth == 2
        assert k(1) == 102
        assert k(5) == 106

    def test_block_may_resume_immediately(self):
        def body():
            x = yield co.escape(lambda k: [k(1), k(2)])
            return x * 10

        assert co.capture(body) == [10, 20]

    def test_handler_escape_yields_resumable_continuation(self):
        def body():
            x = yield co.perform("choose")
            return x * 10

        k = co.capture({"choose": lambda: reaffect.escape(lambda k: k)}, body)
        assert k(1) == 10
        assert k(2) == 20

    def test_amb_enumerates_all_branches(self):
        def flip():
            return reaffect.escape(lambda k: k(True) + k(False))

        def body():
            a = yield co.perform("flip")
            b = yield co.perform("flip")
            return [(a, b)]

        assert co.capture({"flip": flip}, body) == [
            (True, True),
            (True, False),
            (False, True),
            (False, False),
        ]

    def test_outer_handlers_are_resolved_at_invocation(self):
        def body():
            x = yield co.escape(lambda k: k)
            y = yield co.perform("late")
            return x + y

        k = co.capture(body)
        assert reaffect.capture({"late": lambda: 10}, lambda: k(1)) == 11
        with pytest.raises(UnhandledEffect):
            k(1)

    def test_resumed_body_may_escape_again(self):
        def body():
            x = yield co.escape(lambda k: k)
            yield co.escape(lambda: f"left with {x}")

        k = co.capture(body)
        assert k("a") == "left with a"


class TestReuseFailures:
    def test_closed_controller(self):
        with ContinuationController() as controller:
            k = controller.capture(doubling_body)
            assert k(1) == 2
        assert controller.closed
        with pytest.raises(ContinuationReuseFailure, match="closed"):
            k(1)

    def test_closed_controller_rejects_new_captures(self):
        controller = ContinuationController()
        controller.close()
        with pytest.raises(ContinuationReuseFailure):
            controller.capture(doubling_body)

    def test_other_thread(self):
        k = co.capture(doubling_body)
        with ThreadPoolExecutor(max_workers=1) as pool:
            future = pool.submit(k, 1)
            with pytest.raises(ContinuationReuseFailure, match="cannot be resumed from"):
                future.result()
        assert k(1) == 2

    def test_generator_object_body_cannot_rewind(self):
        k = co.capture(doubling_body())
        with pytest.raises(ContinuationReuseFailure, match="generator object"):
            k(1)

    def test_divergence_by_early_return(self):
        first = [True]

        def body():
            if first[0]:
                first[0] = False
                return (yield co.escape(lambda k: k))
            return "different"

        k = co.capture(body)
        with pytest.raises(ContinuationReuseFailure, match="before reaching"):
            k(1)

    def test_divergence_by_primitive_type(self):
        first = [True]

        def body():
            if first[0]:
                first[0] = False
                return (yield co.escape(lambda k: k))
            return (yield co.perform("other"))

        k = co.capture({"other": lambda: 0}, body)
        with pytest.raises(ContinuationReuseFailure, match="diverged"):
            k(1)

    def test_replay_error(self):
        runs = []

        def body():
            runs.append(1)
            if len(runs) > 1:
                raise RuntimeError("not again")
            return (yield co.escape(lambda k: k))

        k = co.capture(body)
        with pytest.raises(ContinuationReuseFailure, match="RuntimeError"):
            k(1)

    def test_body_code_escape_has_no_continuation(self):
        def body():
            reaffect.escape(lambda k: k)
            yield co.perform("never")

        with pytest.raises(ContinuationUnavailable):
            co.capture(body)

    @pytest.mark.asyncio
    async def test_other_asyncio_task(self):
        k = co.capture(doubling_body)

        async def resume():
            return k(1)

        with pytest.raises(ContinuationReuseFailure):
            await asyncio.create_task(resume())
        assert k(3) == 6


class TestFrameArena:
    def test_scopes_without_continuations_leave_no_records(self):
        def inner():
            return (yield co.perform("x"))

        def body():
            total = 0
            for _ in range(1000):
                total += yield co.with_handlers({"x": lambda: 1}, inner)
            return total

        controller = ContinuationController()
        assert controller.capture(body) == 1000
        assert len(controller.frames) == 0

    def test_only_snapshotted_records_are_kept(self):
        def inner():
            return (yield co.perform("x"))

        def body():
            for _ in range(1000):
                yield co.with_handlers({"x": lambda: 1}, inner)
            return (yield co.escape(lambda k: k))

        controller = ContinuationController()
        k = controller.capture(body)
        assert len(controller.frames) == 1
        assert k(1) == 1
        assert k(2) == 2
        assert len(controller.frames) == 1

    def test_repeated_snapshots_share_records(self):
        def flip():
            return reaffect.escape(lambda k: k(True) + k(False))

        def body():
            a = yield co.perform("flip")
            b = yield co.perform("flip")
            return [(a, b)]

        controller = ContinuationController()
        assert len(controller.capture({"flip": flip}, body)) == 4
        assert len(controller.frames) == 1
