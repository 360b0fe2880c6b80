"""
ProgressChannel unit tests
"""

import threading

from stratopt.optimization.progress import ProgressChannel
from stratopt.optimization.results.models import OptimizationProgress


def snapshot(iteration):
    return OptimizationProgress(iteration=iteration, max_iterations=10)


class TestProgressChannel:
    """Fan-out to subscribers and callbacks"""

    def test_subscribers_see_publish_order(self):
        channel = ProgressChannel()
        subscription = channel.subscribe()
        for i in range(5):
            channel.publish(snapshot(i))
        channel.close()

        assert [p.iteration for p in subscription] == [0, 1, 2, 3, 4]

    def test_consumer_thread(self):
        channel = ProgressChannel(maxsize=2, put_timeout=5.0)
        subscription = channel.subscribe()
        seen = []
        consumer = threading.Thread(target=lambda: seen.extend(p.iteration for p in subscription))
        consumer.start()

        for i in range(20):
            channel.publish(snapshot(i))
        channel.close()
        consumer.join(5)

        assert seen == list(range(20))

    def test_full_queue_drops_instead_of_blocking(self):
        channel = ProgressChannel(maxsize=1, put_timeout=0.01)
        subscription = channel.subscribe()
        channel.publish(snapshot(0))
        channel.publish(snapshot(1))

        assert subscription.dropped == 1
        assert subscription.get(timeout=1).iteration == 0

    def test_failing_callback_is_contained(self):
        channel = ProgressChannel()
        received = []

        def broken(progress):
            raise RuntimeError("UI went away")

        channel.add_callback(broken)
        channel.add_callback(received.append)
        channel.publish(snapshot(3))

        assert [p.iteration for p in received] == [3]

    def test_unsubscribe_and_remove_callback(self):
        channel = ProgressChannel()
        received = []
        subscription = channel.subscribe()
        channel.add_callback(received.append)

        subscription.close()
        channel.remove_callback(received.append)
        channel.publish(snapshot(1))

        assert received == []
        assert subscription._queue.empty()

    def test_get_returns_none_after_close(self):
        channel = ProgressChannel()
        subscription = channel.subscribe()
        channel.close()
        assert subscription.get(timeout=1) is None
