# asyncio front end for Datalogger, for sampling drivers that run as tasks
import asyncio

from .logger import get_logger


class AsyncDatalog:
    """
    Wraps a Datalogger so captures can be awaited from an event loop.

    The blocking write runs in a worker thread. close() is shielded: if the
    awaiting task is cancelled the file is still closed, and a second close()
    is a no-op like Datalogger.close().
    """
    def __init__(self, datalog):
        self.datalog = datalog
        self.logger = get_logger(self.__class__.__name__, datalog=datalog.path)
        self._closing = None

    def __getitem__(self, name):
        return self.datalog[name]

    def update(self, values=None, **kwargs):
        self.datalog.update(values, **kwargs)

    async def capture(self, raise_errors=False) -> bool:
        return await asyncio.to_thread(self.datalog.capture, raise_errors)

    slurp = capture

    async def close(self) -> bool:
        if self._closing is None:
            self._closing = asyncio.ensure_future(asyncio.to_thread(self.datalog.close))
        try:
            return await asyncio.shield(self._closing)
        except asyncio.CancelledError:
            self.logger.info("CloseCancelled", {"path": self.datalog.path})
            raise

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()
