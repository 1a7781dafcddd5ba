# src/medicao_obra/locking.py
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator


class ReadWriteLock:
    """
    Vários leitores ao mesmo tempo, um escritor por vez, nunca os dois.
    Escritor esperando bloqueia novos leitores (sem inanição do escritor).
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class ContractLocks:
    """Um ReadWriteLock por obra/contrato, criado sob demanda."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, ReadWriteLock] = {}

    def get(self, contract_id: Hashable) -> ReadWriteLock:
        with self._guard:
            lock = self._locks.get(contract_id)
            if lock is None:
                lock = self._locks[contract_id] = ReadWriteLock()
            return lock

    def read(self, contract_id: Hashable):
        return self.get(contract_id).read()

    def write(self, contract_id: Hashable):
        return self.get(contract_id).write()
