"""Round-robin scheduling over two run queues with priority time slices."""

from .env import EnvStatus


class Scheduler:
    """Runs each environment for as many slices as its priority.

    Environments are taken from the active queue and moved to the tail of the
    other one; when the active queue has nothing runnable the queues swap.
    """

    def __init__(self, table):
        self.table = table
        self.count = 0
        self.point = 0
        table.on_yield = self.schedule

    def _first_runnable(self, queue):
        return next((env for env in queue if env.status == EnvStatus.RUNNABLE), None)

    def schedule(self):
        """Pick the next environment, run it and return it; None if nothing can run."""
        table = self.table
        cur = table.curenv
        if self.count != 0 and cur is not None and cur.status == EnvStatus.RUNNABLE:
            self.count -= 1
            table.run(cur)
            return cur

        env = self._first_runnable(table.sched_lists[self.point])
        if env is None:
            self.point = 1 - self.point
            env = self._first_runnable(table.sched_lists[self.point])
        if env is None:
            return None

        table.sched_lists[self.point].remove(env)
        table.sched_lists[1 - self.point].append(env)
        self.count = env.pri - 1
        table.run(env)
        return env