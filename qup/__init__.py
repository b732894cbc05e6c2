"""Live virtual queues for businesses (MQTT-based).

Customers join a business's line from their phone, employees serve it and can
put VIPs at the front, managers open and close it within business hours.

Pieces:
- a queue state machine over a transactional document store
- wait-time estimation from staffing and service rate
- an MQTT request/response service and a small CLI client

See README for how to run.
"""
