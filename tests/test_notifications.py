"""Tests for events and notifications."""

from unittest.mock import MagicMock, patch

from tmuxdebate.config import NotificationsConfig, WebhookNotificationConfig
from tmuxdebate.consensus import detect_consensus
from tmuxdebate.context import DebateContext, DebatePhase, RoundRecord
from tmuxdebate.events import DebateEvent, DebateEventType, EventEmitter
from tmuxdebate.notifications import (
    ConsoleChannel,
    Notifier,
    WebhookChannel,
    create_notifier_from_config,
)


class TestEventEmitter:
    """Tests for EventEmitter."""

    def test_emit_reaches_listeners(self):
        """Test every listener gets the event."""
        emitter = EventEmitter()
        received = []
        emitter.subscribe(received.append)
        event = emitter.emit(DebateEventType.ROUND_START, round=1)
        assert received == [event]
        assert event.data == {"round": 1}

    def test_type_filter(self):
        """Test listeners can subscribe to some types only."""
        emitter = EventEmitter()
        received = []
        emitter.subscribe(received.append, types=[DebateEventType.ERROR])
        emitter.emit(DebateEventType.ROUND_START)
        emitter.emit(DebateEventType.ERROR, message="x")
        assert [e.type for e in received] == [DebateEventType.ERROR]

    def test_failing_listener_is_isolated(self):
        """Test a raising listener does not stop the others."""
        emitter = EventEmitter()
        received = []
        emitter.subscribe(MagicMock(side_effect=RuntimeError("boom")))
        emitter.subscribe(received.append)
        emitter.emit(DebateEventType.WARNING, message="hi")
        assert len(received) == 1

    def test_unsubscribe(self):
        """Test the returned function removes the listener."""
        emitter = EventEmitter()
        received = []
        unsubscribe = emitter.subscribe(received.append)
        unsubscribe()
        emitter.emit(DebateEventType.WARNING)
        assert received == []


class TestConsoleChannel:
    """Tests for ConsoleChannel."""

    def test_send_plain(self, capsys):
        """Test every line gets a timestamp prefix."""
        ConsoleChannel(colors=False).send("one\ntwo")
        lines = capsys.readouterr().out.strip().split("\n")
        assert len(lines) == 2
        assert lines[0].startswith("[") and lines[0].endswith("] one")

    def test_send_colored(self, capsys):
        """Test colours wrap the timestamp."""
        ConsoleChannel(colors=True).send("msg", level="error")
        assert "\033[31m" in capsys.readouterr().out


class TestWebhookChannel:
    """Tests for WebhookChannel."""

    @patch("tmuxdebate.notifications.urllib.request.urlopen")
    def test_send(self, mock_urlopen):
        """Test a JSON POST is made for subscribed events."""
        mock_urlopen.return_value.__enter__.return_value.status = 200
        channel = WebhookChannel("http://hook", events=["consensus"])
        assert channel.send("agreed", event="consensus") is True
        request = mock_urlopen.call_args.args[0]
        assert request.full_url == "http://hook"
        assert request.get_method() == "POST"

    @patch("tmuxdebate.notifications.urllib.request.urlopen")
    def test_filtered_event_skipped(self, mock_urlopen):
        """Test unsubscribed events are not posted."""
        channel = WebhookChannel("http://hook", events=["error"])
        assert channel.send("round", event="round_start") is True
        mock_urlopen.assert_not_called()

    @patch("tmuxdebate.notifications.urllib.request.urlopen", side_effect=OSError("down"))
    def test_failure_returns_false(self, mock_urlopen):
        """Test network failures are reported, not raised."""
        assert WebhookChannel("http://hook").send("x") is False


class TestNotifier:
    """Tests for the Notifier dispatcher."""

    def test_handle_consensus_event(self):
        """Test consensus events reach channels."""
        channel = MagicMock()
        notifier = Notifier([channel])
        verdict = detect_consensus("AGREE: YES\nREASON: fine")
        notifier.handle_event(
            DebateEvent(DebateEventType.CONSENSUS, {"round": 2, "verdict": verdict})
        )
        message, level, data = channel.send.call_args.args
        assert "Round 2: AGREED" in message
        assert level == "success"
        assert data["agreed"] is True

    def test_handle_timeout_event(self):
        """Test timeouts are warnings."""
        channel = MagicMock()
        Notifier([channel]).handle_event(
            DebateEvent(DebateEventType.TIMEOUT, {"role": "reviewer", "round": 1, "timeout": 180})
        )
        message, level, _ = channel.send.call_args.args
        assert "reviewer did not finish within 180s" in message
        assert level == "warning"

    def test_debate_complete(self):
        """Test the completion summary includes the final answer."""
        channel = MagicMock()
        ctx = DebateContext(topic="Caching", max_rounds=3, consensus_reached=True)
        ctx.rounds.append(RoundRecord(1, "p", "r", detect_consensus("AGREE: YES\nFINAL_ANSWER: Z")))
        Notifier([channel]).on_debate_complete(ctx, DebatePhase.AGREED)
        message, level, data = channel.send.call_args.args
        assert "Debate concluded: Caching" in message
        assert "Final answer:\nZ" in message
        assert data["phase"] == "agreed"

    def test_debate_started(self):
        """Test the start announcement carries the session."""
        channel = MagicMock()
        Notifier([channel]).on_debate_started("Caching", "debate-x", 5)
        message, level, data = channel.send.call_args.args
        assert message.startswith("Starting debate: Caching")
        assert "Session: debate-x" in message
        assert data["max_rounds"] == 5

    def test_channel_errors_suppressed(self):
        """Test a failing channel does not raise."""
        channel = MagicMock()
        channel.send.side_effect = RuntimeError("boom")
        Notifier([channel]).on_error("bad")

    def test_webhook_gets_event_name(self):
        """Test webhook channels receive the event for filtering."""
        channel = MagicMock(spec=WebhookChannel)
        Notifier([channel]).on_warning("careful")
        assert channel.send.call_args.kwargs["event"] == "warning"


class TestCreateNotifier:
    """Tests for create_notifier_from_config."""

    def test_default(self):
        """Test defaults give a console channel only."""
        notifier = create_notifier_from_config(NotificationsConfig())
        assert len(notifier.channels) == 1
        assert isinstance(notifier.channels[0], ConsoleChannel)

    def test_webhook(self):
        """Test an enabled webhook is added."""
        config = NotificationsConfig(
            webhook=WebhookNotificationConfig(enabled=True, url="http://hook", events=["error"])
        )
        notifier = create_notifier_from_config(config)
        assert isinstance(notifier.channels[1], WebhookChannel)
        assert notifier.channels[1].events == ["error"]

    def test_from_dict(self):
        """Test plain dictionaries are accepted too."""
        notifier = create_notifier_from_config({"console": {"enabled": False}})
        assert notifier.channels == []
