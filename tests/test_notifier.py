from core.mandala_engine.models import CelebrationEvent, GoalStatus, NodeTransition, Tier
from core.mandala_engine.notifier import CelebrationNotifier
from core.mandala_engine.store import GoalNodeStore
from interface.notifiers.base import BaseNotifier, NotificationPriority


class RecordingNotifier(BaseNotifier):
    def __init__(self, fail=False):
        super().__init__()
        self.sent = []
        self.fail = fail

    def send(self, notification):
        if self.fail:
            raise RuntimeError("sink down")
        self.sent.append(notification)
        return True

    def get_name(self):
        return "recording"


def _achieved(node_id, tier):
    return NodeTransition(node_id, tier, "", GoalStatus.IN_PROGRESS, GoalStatus.ACHIEVED)


def test_inspect_emits_once_per_node():
    store = GoalNodeStore()
    store.set_title("major_1_middle_1", "Run 10k")
    notifier = CelebrationNotifier()

    first = notifier.inspect(store, [_achieved("major_1_middle_1", Tier.MIDDLE)])
    second = notifier.inspect(store, [_achieved("major_1_middle_1", Tier.MIDDLE)])

    assert [(e.goal_title, e.tier, e.node_id) for e in first] == [("Run 10k", Tier.MIDDLE, "major_1_middle_1")]
    assert second == []
    assert store.require_node("major_1_middle_1").celebrated


def test_inspect_ignores_other_transitions():
    store = GoalNodeStore()
    notifier = CelebrationNotifier()
    transitions = [
        NodeTransition("major_1", Tier.MAJOR, "", GoalStatus.NOT_STARTED, GoalStatus.IN_PROGRESS),
        NodeTransition("major_2", Tier.MAJOR, "", GoalStatus.ACHIEVED, GoalStatus.ACHIEVED),
    ]
    assert notifier.inspect(store, transitions) == []


def test_untitled_nodes_still_celebrate():
    store = GoalNodeStore()
    events = CelebrationNotifier().inspect(store, [_achieved("major_3", Tier.MAJOR)])
    assert events[0].goal_title == ""


def test_publish_reaches_listeners_and_sinks():
    sink = RecordingNotifier()
    notifier = CelebrationNotifier(sinks=[sink])
    heard = []
    notifier.subscribe(heard.append)

    event = CelebrationEvent(goal_title="Health", tier=Tier.MAJOR, node_id="major_1")
    notifier.publish([event])

    assert heard == [event]
    assert sink.sent[0].message == "Health"
    assert sink.sent[0].priority == NotificationPriority.HIGH
    assert sink.sent[0].node_id == "major_1"


def test_failing_listener_or_sink_does_not_stop_delivery():
    good = RecordingNotifier()
    notifier = CelebrationNotifier(sinks=[RecordingNotifier(fail=True), good])

    def broken(event):
        raise RuntimeError("listener down")

    notifier.subscribe(broken)
    notifier.publish([CelebrationEvent(goal_title="a", tier=Tier.MINOR, node_id="major_1_middle_1_minor_1")])

    assert len(good.sent) == 1
    assert len(notifier.pending) == 1


def test_unsubscribe():
    notifier = CelebrationNotifier()
    heard = []
    notifier.subscribe(heard.append)
    notifier.unsubscribe(heard.append)
    notifier.publish([CelebrationEvent(goal_title="a", tier=Tier.MAJOR, node_id="major_1")])
    assert heard == []


def test_queue_is_bounded_and_drained_once():
    notifier = CelebrationNotifier(queue_limit=2)
    events = [CelebrationEvent(goal_title=str(i), tier=Tier.MAJOR, node_id=f"major_{i}") for i in range(1, 4)]
    notifier.publish(events)

    drained = notifier.drain()

    assert [e.node_id for e in drained] == ["major_2", "major_3"]
    assert notifier.drain() == []
