"""Tests for Human-in-the-Loop confirmation tracking."""

import threading


class TestPendingConfirmation:
    """Tests for PendingConfirmation."""

    def test_defaults(self):
        """New pending confirmations wait for the user."""
        from bashrun.hitl import ConfirmationState, PendingConfirmation

        pending = PendingConfirmation(command="sudo ls", reason="sudo")

        assert pending.state is ConfirmationState.PENDING_CONFIRMATION
        assert pending.to_dict() == {
            "command": "sudo ls",
            "reason": "sudo",
            "description": None,
            "state": "pending_confirmation",
        }


class TestConfirmationStore:
    """Tests for the in-memory confirmation state machine."""

    def test_initial_state(self):
        """Unknown sessions are unclassified."""
        from bashrun.hitl import ConfirmationState, ConfirmationStore

        store = ConfirmationStore()

        assert store.state("s1") is ConfirmationState.UNCLASSIFIED
        assert store.get_pending("s1") is None
        assert not store.is_confirmed("s1", "anything")

    def test_pending_then_approved(self):
        """Confirming the pending command approves exactly that command."""
        from bashrun.hitl import ConfirmationState, ConfirmationStore, PendingConfirmation

        store = ConfirmationStore()
        store.set_pending("s1", PendingConfirmation(command="rm -r build"))

        assert store.state("s1") is ConfirmationState.PENDING_CONFIRMATION
        assert not store.is_confirmed("s1", "rm -r build")

        approved = store.confirm("s1")

        assert approved is not None
        assert store.state("s1") is ConfirmationState.APPROVED
        assert store.is_confirmed("s1", "rm -r build")
        assert not store.is_confirmed("s1", "rm -r dist")
        assert not store.is_confirmed("s2", "rm -r build")

    def test_confirm_without_pending(self):
        """Confirming an empty slot does nothing."""
        from bashrun.hitl import ConfirmationState, ConfirmationStore

        store = ConfirmationStore()

        assert store.confirm("s1") is None
        assert store.state("s1") is ConfirmationState.UNCLASSIFIED

    def test_new_pending_replaces_old(self):
        """One slot per session: a new ask replaces the previous one."""
        from bashrun.hitl import ConfirmationStore, PendingConfirmation

        store = ConfirmationStore()
        store.set_pending("s1", PendingConfirmation(command="sudo a"))
        store.confirm("s1")
        store.set_pending("s1", PendingConfirmation(command="sudo b"))

        assert store.get_pending("s1").command == "sudo b"
        assert not store.is_confirmed("s1", "sudo a")
        assert not store.is_confirmed("s1", "sudo b")

    def test_clear_after_approval_is_executed(self):
        """Consuming an approval closes the cycle."""
        from bashrun.hitl import ConfirmationState, ConfirmationStore, PendingConfirmation

        store = ConfirmationStore()
        store.set_pending("s1", PendingConfirmation(command="sudo ls"))
        store.confirm("s1")
        store.clear_pending("s1")

        assert store.get_pending("s1") is None
        assert store.state("s1") is ConfirmationState.EXECUTED

    def test_clear_without_approval(self):
        """Clearing an unapproved slot returns the session to unclassified."""
        from bashrun.hitl import ConfirmationState, ConfirmationStore, PendingConfirmation

        store = ConfirmationStore()
        store.set_pending("s1", PendingConfirmation(command="sudo ls"))
        store.clear_pending("s1")

        assert store.state("s1") is ConfirmationState.UNCLASSIFIED

    def test_mark_executed(self):
        from bashrun.hitl import ConfirmationState, ConfirmationStore, PendingConfirmation

        store = ConfirmationStore()
        store.set_pending("s1", PendingConfirmation(command="sudo ls"))
        store.confirm("s1")
        store.mark_executed("s1")

        assert store.get_pending("s1") is None
        assert store.state("s1") is ConfirmationState.EXECUTED

    def test_reject(self):
        """A rejected command is dropped."""
        from bashrun.hitl import ConfirmationState, ConfirmationStore, PendingConfirmation

        store = ConfirmationStore()
        store.set_pending("s1", PendingConfirmation(command="sudo ls"))

        rejected = store.reject("s1")

        assert rejected.command == "sudo ls"
        assert store.get_pending("s1") is None
        assert store.state("s1") is ConfirmationState.UNCLASSIFIED
        assert store.confirm("s1") is None

    def test_record_denied(self):
        """Denials are recorded without disturbing a pending slot."""
        from bashrun.hitl import ConfirmationState, ConfirmationStore, PendingConfirmation

        store = ConfirmationStore()
        store.record_denied("s1", "rm -rf /", "blocked")

        assert store.state("s1") is ConfirmationState.DENIED

        store.set_pending("s2", PendingConfirmation(command="sudo ls"))
        store.record_denied("s2", "rm -rf /", "blocked")

        assert store.get_pending("s2").command == "sudo ls"

    def test_satisfies_gate_protocol(self):
        from bashrun.hitl import ConfirmationGate, ConfirmationStore

        assert isinstance(ConfirmationStore(), ConfirmationGate)

    def test_concurrent_sessions(self):
        """Sessions updated from several threads stay independent."""
        from bashrun.hitl import ConfirmationStore, PendingConfirmation

        store = ConfirmationStore()

        def worker(n: int):
            session = f"s{n}"
            store.set_pending(session, PendingConfirmation(command=f"sudo job {n}"))
            store.confirm(session)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        for n in range(20):
            assert store.is_confirmed(f"s{n}", f"sudo job {n}")
