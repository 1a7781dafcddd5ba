import threading
import time

from medicao_obra.locking import ContractLocks, ReadWriteLock


def test_mesmo_lock_por_contrato():
    locks = ContractLocks()
    assert locks.get("obra-1") is locks.get("obra-1")
    assert locks.get("obra-1") is not locks.get("obra-2")


def test_leitores_simultaneos():
    lock = ReadWriteLock()
    dentro = threading.Barrier(2, timeout=5)
    ok = []

    def ler():
        with lock.read():
            dentro.wait()
            ok.append(True)

    ts = [threading.Thread(target=ler) for _ in range(2)]
    for t in ts:
        t.start()
    for t in ts:
        t.join(5)
    assert not any(t.is_alive() for t in ts)
    assert ok == [True, True]


def test_escritores_nao_se_sobrepoem():
    locks = ContractLocks()
    eventos = []

    def escrever(n):
        with locks.write("obra"):
            eventos.append(("in", n))
            time.sleep(0.01)
            eventos.append(("out", n))

    ts = [threading.Thread(target=escrever, args=(i,)) for i in range(4)]
    for t in ts:
        t.start()
    for t in ts:
        t.join(5)

    assert len(eventos) == 8
    for i in range(0, 8, 2):
        assert eventos[i][0] == "in"
        assert eventos[i + 1] == ("out", eventos[i][1])


def test_escritor_espera_leitor():
    lock = ReadWriteLock()
    ordem = []
    leitor_dentro = threading.Event()
    liberar = threading.Event()

    def ler():
        with lock.read():
            leitor_dentro.set()
            liberar.wait(5)
            ordem.append("leitor")

    def escrever():
        with lock.write():
            ordem.append("escritor")

    tl = threading.Thread(target=ler)
    tl.start()
    leitor_dentro.wait(5)
    te = threading.Thread(target=escrever)
    te.start()
    time.sleep(0.05)
    assert ordem == []
    liberar.set()
    tl.join(5)
    te.join(5)
    assert ordem == ["leitor", "escritor"]
