#!/usr/bin/env python
"""Coalesce concurrent requests for a value that must be loaded exactly once.

|CoalescedLoad| wraps a coroutine function that loads some shared state, for
example the header of an R tree index. The first caller to ask for the value
starts the load as a task of its own. Callers arriving while that task is in
flight wait on it instead of issuing a duplicate load. When the load
completes, the value is cached and every waiting caller is resumed exactly
once with it.

Each caller waits through :func:`asyncio.shield`, so cancelling one caller,
including the one that started the load, never cancels the load itself for
the others. If the load fails, every waiting caller receives the same
exception, and the value stays unloaded so that a later request may try again.

Examples
--------
Load an index header once, no matter how many queries arrive at once::

    >>> header_load = CoalescedLoad(fetch_header,name="index header")
    >>> headers = await asyncio.gather(*[header_load.get() for _ in range(10)])
    >>> header_load.load_count
    1
"""
import asyncio


class CoalescedLoad(object):
    """Cache the result of a one-time asynchronous load, coalescing concurrent callers

    Attributes
    ----------
    loader : coroutine function
        Called with no arguments to perform the load

    name : str
        Description used in :meth:`__repr__`

    load_count : int
        Number of times `loader` has been invoked
    """

    def __init__(self,loader,name="load"):
        self.loader     = loader
        self.name       = name
        self.load_count = 0
        self._value     = None
        self._loaded    = False
        self._task      = None

    def __repr__(self):
        if self._loaded:
            state = "loaded"
        elif self._task is not None:
            state = "pending"
        else:
            state = "unloaded"

        return "<%s %s %s>" % (self.__class__.__name__,self.name,state)

    @property
    def loaded(self):
        """`True` if the value has been loaded and cached"""
        return self._loaded

    @property
    def pending(self):
        """`True` if a load is in flight"""
        return self._task is not None

    def peek(self):
        """Return the cached value, or `None` if not yet loaded"""
        return self._value

    async def get(self):
        """Return the value, loading it if no load has completed or is in flight

        Returns
        -------
        object
            Result of `loader`

        Raises
        ------
        Exception
            Whatever `loader` raised, delivered to every caller waiting on
            the failed load

        asyncio.CancelledError
            If this caller is cancelled. The load continues for other callers
        """
        if self._loaded:
            return self._value

        if self._task is None:
            self.load_count += 1
            self._task = asyncio.get_running_loop().create_task(self.loader())
            self._task.add_done_callback(self._finish)

        return await asyncio.shield(self._task)

    def _finish(self,task):
        # runs before any waiter resumes, since it is the task's first callback
        if task is not self._task:
            return

        self._task = None
        if task.cancelled() or task.exception() is not None:
            return

        self._value  = task.result()
        self._loaded = True
