"""测试命令分发器"""

import asyncio
import json

import pytest

from lan_messenger.exceptions import PersistenceError
from lan_messenger.hub import (
    BroadcastRouter,
    CommandDispatcher,
    CommandHandler,
    CoordinatesCommand,
    EvaluateCommand,
    QuitCommand,
    SessionRegistry,
    SnapshotCommand,
    match_marker,
)
from lan_messenger.monitor import HubMetrics
from lan_messenger.protocol import CommandKind
from lan_messenger.services import ArithmeticEvaluator, ExpressionEvaluator, SnapshotStore

from .fakes import make_session, wait_until


class RecordingStore(SnapshotStore):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.saved = []

    def persist(self, users):
        if self.fail:
            raise PersistenceError("disk full")
        self.saved.append(list(users))


class ExplodingEvaluator(ExpressionEvaluator):
    def evaluate(self, expression):
        raise RuntimeError("evaluator crashed")


class CrashingStore(SnapshotStore):
    def persist(self, users):
        raise RuntimeError("store crashed")


def build_dispatcher(registry, store=None, evaluator=None, geo=True, eval_enabled=True):
    metrics = HubMetrics()
    router = BroadcastRouter(registry, metrics)
    dispatcher = CommandDispatcher(registry, router, metrics)
    if eval_enabled:
        dispatcher.register(EvaluateCommand(router, evaluator or ArithmeticEvaluator()))
    if geo:
        dispatcher.register(CoordinatesCommand(router, registry))
        dispatcher.register(SnapshotCommand(router, registry, store or RecordingStore()))
    dispatcher.register(QuitCommand(router))
    return dispatcher


async def _settle():
    await asyncio.sleep(0.05)


@pytest.fixture
def registry():
    return SessionRegistry()


class TestMatchMarker:
    def test_marker_with_argument(self):
        assert match_marker("/get alice", "/get", True) == "alice"

    def test_marker_alone(self):
        assert match_marker("/save", "/save", True) == ""

    def test_marker_needs_delimiter(self):
        assert match_marker("/getaway", "/get", True) is None

    def test_eval_marker_without_space(self):
        assert match_marker("EVAL:2*3", "EVAL:", False) == "2*3"

    def test_marker_is_case_sensitive(self):
        assert match_marker("eval: 1+1", "EVAL:", False) is None


class TestClassify:
    @pytest.mark.parametrize(
        "line, expected",
        [
            ("EVAL: 5 * (3 + 2)", (CommandKind.EVALUATE, "5 * (3 + 2)")),
            ("   EVAL:1+1  ", (CommandKind.EVALUATE, "1+1")),
            ("EVAL: /get alice", (CommandKind.EVALUATE, "/get alice")),
            ("/get alice", (CommandKind.COORDINATES, "alice")),
            ("/get", (CommandKind.COORDINATES, "")),
            ("/get   Bob Smith ", (CommandKind.COORDINATES, "Bob Smith")),
            ("/save", (CommandKind.SNAPSHOT, "")),
            ("/save please", (CommandKind.SNAPSHOT, "please")),
            ("/quit", (CommandKind.QUIT, "")),
            ("/getaway", (CommandKind.CHAT, "/getaway")),
            ("/saved", (CommandKind.CHAT, "/saved")),
            ("hello /get alice", (CommandKind.CHAT, "hello /get alice")),
            ("  spaced out  ", (CommandKind.CHAT, "  spaced out  ")),
            ("", (CommandKind.CHAT, "")),
        ],
    )
    def test_precedence(self, registry, line, expected):
        dispatcher = build_dispatcher(registry)
        assert dispatcher.classify(line) == expected

    def test_disabled_commands_are_chat(self, registry):
        """未启用的命令按普通聊天处理"""
        dispatcher = build_dispatcher(registry, geo=False, eval_enabled=False)

        assert dispatcher.classify("EVAL: 1+1") == (CommandKind.CHAT, "EVAL: 1+1")
        assert dispatcher.classify("/get alice") == (CommandKind.CHAT, "/get alice")
        assert dispatcher.classify("/quit") == (CommandKind.QUIT, "")

    def test_help_follows_precedence(self, registry):
        dispatcher = build_dispatcher(registry)
        assert dispatcher.get_help() == ["EVAL: <expression>", "/get <user>", "/save", "/quit"]

    def test_chat_handler_cannot_be_registered(self, registry):
        class ChatCommand(CommandHandler):
            kind = CommandKind.CHAT
            marker = ""

            async def execute(self, session, argument):
                pass

        dispatcher = build_dispatcher(registry)
        with pytest.raises(ValueError):
            dispatcher.register(ChatCommand(dispatcher.router))


@pytest.mark.asyncio
async def test_chat_broadcast_excludes_sender(registry):
    dispatcher = build_dispatcher(registry)
    alice = make_session(registry, "alice")
    bob = make_session(registry, "bob")

    kind = await dispatcher.dispatch(alice, "hello")

    assert kind == CommandKind.CHAT
    await wait_until(lambda: bob.transport.written)
    await _settle()
    assert bob.transport.written == ["[alice]: hello"]
    assert alice.transport.written == []


@pytest.mark.asyncio
async def test_eval_replies_only_to_sender(registry):
    dispatcher = build_dispatcher(registry)
    alice = make_session(registry, "alice")
    bob = make_session(registry, "bob")

    await dispatcher.dispatch(alice, "EVAL: 5 * (3 + 2)")

    await wait_until(lambda: alice.transport.written)
    await _settle()
    assert alice.transport.written == ["RESULT:25"]
    assert bob.transport.written == []


@pytest.mark.asyncio
async def test_eval_error_reply(registry):
    dispatcher = build_dispatcher(registry)
    alice = make_session(registry, "alice")

    await dispatcher.dispatch(alice, "EVAL: 1 / 0")
    await dispatcher.dispatch(alice, "EVAL:")

    await wait_until(lambda: len(alice.transport.written) == 2)
    assert alice.transport.written == [
        "RESULT:Error evaluating expression.",
        "RESULT:Error evaluating expression.",
    ]


@pytest.mark.asyncio
async def test_unexpected_handler_error_keeps_session(registry):
    """协作者的意外异常只影响本次命令，发送者仍收到错误结果"""
    dispatcher = build_dispatcher(registry, evaluator=ExplodingEvaluator())
    alice = make_session(registry, "alice")

    kind = await dispatcher.dispatch(alice, "EVAL: 1+1")

    assert kind == CommandKind.EVALUATE
    assert not alice.close_requested
    await dispatcher.dispatch(alice, "/get alice")
    await wait_until(lambda: len(alice.transport.written) == 2)
    assert alice.transport.written == [
        "RESULT:Error evaluating expression.",
        "User not found.",
    ]


@pytest.mark.asyncio
async def test_unexpected_store_error_replies_save_failure(registry):
    dispatcher = build_dispatcher(registry, store=CrashingStore())
    alice = make_session(registry, "alice", (41.5, 2.25))

    await dispatcher.dispatch(alice, "/save")

    await wait_until(lambda: alice.transport.written)
    assert alice.transport.written == ["Error saving user data."]


@pytest.mark.asyncio
async def test_deeply_nested_expression_gets_error_result(registry):
    """超深嵌套的表达式也必须得到回复"""
    dispatcher = build_dispatcher(registry)
    alice = make_session(registry, "alice")

    await dispatcher.dispatch(alice, "EVAL: " + "-" * 990 + "1")

    await wait_until(lambda: alice.transport.written)
    assert alice.transport.written == ["RESULT:Error evaluating expression."]


@pytest.mark.asyncio
async def test_get_coordinates(registry):
    dispatcher = build_dispatcher(registry)
    alice = make_session(registry, "alice", (41.5, 2.25))
    bob = make_session(registry, "bob", (0.0, 0.0))

    await dispatcher.dispatch(bob, "/get ALICE")

    await wait_until(lambda: bob.transport.written)
    line = bob.transport.written[0]
    assert line.startswith("USER_COORDINATES:")
    assert json.loads(line[len("USER_COORDINATES:"):]) == {
        "userName": "alice",
        "latitude": 41.5,
        "longitude": 2.25,
    }
    assert alice.transport.written == []


@pytest.mark.asyncio
@pytest.mark.parametrize("line", ["/get bob", "/get", "/get   "])
async def test_get_unknown_user(registry, line):
    dispatcher = build_dispatcher(registry)
    alice = make_session(registry, "alice", (41.5, 2.25))

    await dispatcher.dispatch(alice, line)

    await wait_until(lambda: alice.transport.written)
    assert alice.transport.written == ["User not found."]


@pytest.mark.asyncio
async def test_save_snapshot(registry):
    store = RecordingStore()
    dispatcher = build_dispatcher(registry, store=store)
    alice = make_session(registry, "alice", (41.5, 2.25))
    make_session(registry, "bob", (-33.9, 151.2))

    await dispatcher.dispatch(alice, "/save")

    await wait_until(lambda: alice.transport.written)
    assert alice.transport.written == ["User data has been saved."]
    assert [u.user_name for u in store.saved[0]] == ["alice", "bob"]


@pytest.mark.asyncio
async def test_save_failure_reply(registry):
    dispatcher = build_dispatcher(registry, store=RecordingStore(fail=True))
    alice = make_session(registry, "alice", (41.5, 2.25))

    await dispatcher.dispatch(alice, "/save")

    await wait_until(lambda: alice.transport.written)
    assert alice.transport.written == ["Error saving user data."]
    assert not alice.close_requested


@pytest.mark.asyncio
async def test_quit_requests_close(registry):
    dispatcher = build_dispatcher(registry)
    alice = make_session(registry, "alice")

    assert await dispatcher.dispatch(alice, "/quit") == CommandKind.QUIT
    assert alice.close_requested
    assert alice.close_reason == "quit"


@pytest.mark.asyncio
async def test_commands_are_counted(registry):
    dispatcher = build_dispatcher(registry)
    alice = make_session(registry, "alice")

    await dispatcher.dispatch(alice, "hi")
    await dispatcher.dispatch(alice, "EVAL: 2+2")
    await dispatcher.dispatch(alice, "hi again")

    assert dispatcher.metrics.commands == {"chat": 2, "evaluate": 1}
