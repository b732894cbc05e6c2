from qup.mqtt_topics import business_changes, queue_requests, queue_responses, queue_status


def test_topic_helpers():
    ns = "demo/v1"
    assert queue_requests(ns) == "demo/v1/queues/requests"
    assert queue_responses("c1", ns) == "demo/v1/queues/responses/c1"
    assert queue_status("Cafe", ns) == "demo/v1/queues/status/Cafe"
    assert business_changes("Cafe", ns) == "demo/v1/businesses/changes/Cafe"


def test_default_namespace():
    assert queue_requests() == "qup/v1/queues/requests"
