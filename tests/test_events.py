from yieldsync.events import Deposited, EventLog, EventType, LossRealized, Withdrawn


class TestEventLog:
    def test_records_in_order(self):
        log = EventLog()
        log.emit(Deposited(user="alice", amount=10, shares=10))
        log.emit(Withdrawn(user="alice", amount=5, shares=5))

        assert [e.event_type for e in log.events] == [EventType.DEPOSITED, EventType.WITHDRAWN]

    def test_of_type(self):
        log = EventLog()
        log.emit(Deposited(user="alice", amount=10, shares=10))
        log.emit(LossRealized(pool_id="A", amount=3))

        losses = log.of_type(EventType.LOSS_REALIZED)
        assert [(e.pool_id, e.amount) for e in losses] == [("A", 3)]

    def test_subscribers_notified(self):
        log = EventLog()
        received = []
        log.subscribe(received.append)

        event = Deposited(user="alice", amount=10, shares=10)
        log.emit(event)
        log.unsubscribe(received.append)
        log.emit(event)

        assert received == [event]
        assert log.subscriber_count == 0

    def test_failing_subscriber_does_not_block_others(self):
        log = EventLog()
        received = []

        def broken(event):
            raise RuntimeError("subscriber down")

        log.subscribe(broken)
        log.subscribe(received.append)
        log.emit(Deposited(user="alice", amount=10, shares=10))

        assert len(received) == 1
        assert len(log.events) == 1

    def test_timestamp_is_utc(self):
        event = Deposited(user="alice", amount=1, shares=1)
        assert event.timestamp.tzinfo is not None

    def test_clear(self):
        log = EventLog()
        log.emit(Deposited(user="alice", amount=1, shares=1))
        log.clear()
        assert log.events == []
