from datetime import datetime, timezone

from qup.identity import StaticIdentityProvider
from qup.manager import MqttQueueService, QueueService
from qup.models import Business, Customer, CustomerActor, EmployeeActor, ManagerActor, Queue, StaffMember, WeeklyHours
from qup.mqtt_topics import business_changes, queue_requests, queue_status
from qup.operations import QueueOperations
from qup.store import BUSINESSES, USERS, QueueStateStore


class FakeMqtt:
    """Records what the service would send to the broker."""

    def __init__(self):
        self.subscriptions = []
        self.handlers = []
        self.published = []

    def subscribe(self, topic):
        self.subscriptions.append(topic)

    def add_handler(self, handler):
        self.handlers.append(handler)

    def publish(self, topic, message, *, retain=False):
        self.published.append((topic, message))


def make_service(active=True):
    state = QueueStateStore()
    business = Business(
        name="Cafe",
        queue=Queue(is_active=active),
        hours=WeeklyHours(start_time=["09:00"] * 7, end_time=["17:00"] * 7),
        average_wait_time=4,
        timezone="UTC",
    )
    state.store.put(BUSINESSES, "Cafe", business.to_doc())
    state.store.put(USERS, "alice", Customer(id="alice").to_doc())
    state.store.put(USERS, "erin", StaffMember(id="erin", business_name="Cafe", is_online=True).to_doc())

    identity = StaticIdentityProvider(
        {
            "t-alice": CustomerActor("alice"),
            "t-erin": EmployeeActor("erin", "Cafe"),
            "t-mona": ManagerActor("mona", "Cafe"),
        }
    )
    ops = QueueOperations(state, clock=lambda: datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc))
    return QueueService(ops, identity)


def test_enter_queue_request_succeeds_with_snapshot():
    svc = make_service()
    reply = svc.handle_request({"type": "enter_queue", "token": "t-alice", "businessName": "Cafe"})
    assert reply["type"] == "result"
    assert reply["kind"] == "success"
    assert reply["result"]["queueLength"] == 1
    assert reply["result"]["queueSlots"][0]["ticketNumber"] == 0


def test_unknown_token_is_unauthorized():
    svc = make_service()
    reply = svc.handle_request({"type": "enter_queue", "token": "forged", "businessName": "Cafe"})
    assert reply["type"] == "error"
    assert reply["kind"] == "unauthorized"


def test_role_from_body_is_ignored():
    svc = make_service()
    reply = svc.handle_request(
        {"type": "vip_enter_queue", "token": "t-alice", "userType": "employee", "businessName": "Cafe"}
    )
    assert reply["code"] == "unauthorized"


def test_expected_errors_are_surfaced_verbatim():
    svc = make_service(active=False)
    reply = svc.handle_request({"type": "enter_queue", "token": "t-alice", "businessName": "Cafe"})
    assert reply == {
        "type": "error",
        "code": "queue_inactive",
        "message": "Queue is currently not active",
        "kind": "inactive_queue",
    }


def test_inconsistency_becomes_generic_internal_error():
    svc = make_service()
    svc.operations.state.store.put(USERS, "alice", Customer(id="alice", current_queue="Cafe").to_doc())
    reply = svc.handle_request({"type": "abandon_queue", "token": "t-alice"})
    assert reply["kind"] == "internal_error"
    assert reply["code"] == "internal_error"
    assert "alice" not in reply["message"]


def test_bad_requests():
    svc = make_service()
    missing = svc.handle_request({"type": "enter_queue", "token": "t-alice"})
    assert (missing["code"], missing["kind"]) == ("bad_request", "bad_request")
    assert svc.handle_request({"type": "dance", "token": "t-alice"})["code"] == "bad_request"


def test_vip_and_queue_info_requests():
    svc = make_service()
    svc.handle_request({"type": "enter_queue", "token": "t-alice", "businessName": "Cafe"})
    vip = svc.handle_request({"type": "vip_enter_queue", "token": "t-erin", "businessName": "Cafe"})
    assert vip["result"]["vipSlot"]["isVIP"] is True
    assert vip["result"]["queue"]["queueSlots"][1]["customer"] == "alice"

    info = svc.handle_request({"type": "get_queue", "token": "t-erin", "businessName": "Cafe"})
    assert info["result"]["queueLength"] == 2
    assert info["result"]["currentWaitTime"] == 8.0

    slot = svc.handle_request({"type": "get_slot_info", "token": "t-alice"})
    assert slot["result"]["queuePosition"] == 2


def test_change_queue_status_request():
    svc = make_service(active=False)
    reply = svc.handle_request({"type": "change_queue_status", "token": "t-mona", "businessName": "Cafe"})
    assert reply["result"]["isActive"] is True


def test_mqtt_service_replies_to_reply_topic_with_corr_id():
    mqtt = FakeMqtt()
    svc = MqttQueueService(mqtt=mqtt, service=make_service(), namespace="demo")
    svc.start(publish_status_every=60)
    try:
        assert mqtt.subscriptions == [queue_requests("demo")]
        handler = mqtt.handlers[0]
        handler(
            queue_requests("demo"),
            {
                "type": "enter_queue",
                "token": "t-alice",
                "businessName": "Cafe",
                "corr_id": "abc",
                "reply_to": "demo/queues/responses/c1",
            },
        )
    finally:
        svc.stop()

    replies = [(t, m) for t, m in mqtt.published if t == "demo/queues/responses/c1"]
    assert len(replies) == 1
    assert replies[0][1]["corr_id"] == "abc"
    assert replies[0][1]["kind"] == "success"

    # The committed business document went out on the change feed.
    changes = [m for t, m in mqtt.published if t == business_changes("Cafe", "demo")]
    assert changes and changes[-1]["objectID"] == "Cafe"


def test_mqtt_service_ignores_messages_without_reply_topic():
    mqtt = FakeMqtt()
    svc = MqttQueueService(mqtt=mqtt, service=make_service(), namespace="demo")
    svc._handle_message(queue_requests("demo"), {"type": "enter_queue", "token": "t-alice", "businessName": "Cafe"})
    assert mqtt.published == []


def test_publish_status_broadcasts_each_business():
    mqtt = FakeMqtt()
    svc = MqttQueueService(mqtt=mqtt, service=make_service(), namespace="demo")
    svc.publish_status()
    assert mqtt.published == [
        (queue_status("Cafe", "demo"), {"type": "queue_status", "isActive": True, "queueLength": 0})
    ]


def test_unexpected_fault_becomes_generic_internal_error():
    svc = make_service(active=False)
    doc = svc.operations.state.store.read(BUSINESSES, "Cafe")[1]
    doc["timezone"] = "Mars/Olympus"
    svc.operations.state.store.put(BUSINESSES, "Cafe", doc)

    reply = svc.handle_request({"type": "change_queue_status", "token": "t-mona", "businessName": "Cafe"})
    assert reply == {
        "type": "error",
        "code": "internal_error",
        "message": "Internal Error. Something went wrong!",
        "kind": "internal_error",
    }


def test_missing_hours_reply_as_store_closed():
    svc = make_service(active=False)
    doc = svc.operations.state.store.read(BUSINESSES, "Cafe")[1]
    doc["hours"] = None
    svc.operations.state.store.put(BUSINESSES, "Cafe", doc)

    reply = svc.handle_request({"type": "change_queue_status", "token": "t-mona", "businessName": "Cafe"})
    assert (reply["code"], reply["kind"]) == ("no_hours", "store_closed")


def test_check_in_and_online_employees_requests():
    svc = make_service()
    count = {"type": "get_online_employees", "token": "t-mona", "businessName": "Cafe"}
    assert svc.handle_request(count)["result"] == {"onlineEmployees": 1}

    reply = svc.handle_request({"type": "check_in", "token": "t-erin"})
    assert reply["result"] == {"isOnline": False}
    assert svc.handle_request(count)["result"] == {"onlineEmployees": 0}

    info = svc.handle_request({"type": "get_queue", "token": "t-erin", "businessName": "Cafe"})
    assert info["code"] == "no_staff_online"
