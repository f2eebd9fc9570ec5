from slotsync.cache.invalidation import RESOURCES, InvalidationBus, resources_topic


def test_topic_names():
    assert resources_topic() == "resources"
    assert resources_topic("Desk") == "resources:Desk"


def test_exact_topic_delivery():
    bus = InvalidationBus()
    seen = []
    bus.subscribe("resources:Room", seen.append)
    assert bus.publish("resources:Room") == 1
    assert seen == ["resources:Room"]


def test_parameterized_topic_reaches_kind_subscribers():
    bus = InvalidationBus()
    seen = []
    bus.subscribe(RESOURCES, seen.append)
    bus.publish("resources:Desk")
    assert seen == ["resources:Desk"]


def test_other_parameters_not_delivered():
    bus = InvalidationBus()
    seen = []
    bus.subscribe("resources:Room", seen.append)
    assert bus.publish("resources:Desk") == 0
    assert seen == []


def test_unsubscribe():
    bus = InvalidationBus()
    seen = []
    unsubscribe = bus.subscribe(RESOURCES, seen.append)
    unsubscribe()
    unsubscribe()
    assert bus.publish(RESOURCES) == 0
    assert seen == []
