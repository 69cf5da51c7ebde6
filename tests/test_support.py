import pytest

from conftest import TEST_USER_ID
from valeris.app.common.errors import NotFoundError
from valeris.app.support.tickets import SupportService


@pytest.fixture
def ticket(db):
    return SupportService(db).submit_ticket(TEST_USER_ID, " Login issue ", "Cannot log in", "account", "high")


class TestTickets:
    def test_submit(self, ticket):
        assert ticket["subject"] == "Login issue"
        assert ticket["status"] == "open"
        assert ticket["priority"] == "high"

    @pytest.mark.parametrize(
        "subject,message,category,priority",
        [
            ("", "body", "general", "medium"),
            ("subject", "  ", "general", "medium"),
            ("subject", "body", "gossip", "medium"),
            ("subject", "body", "general", "critical"),
        ],
    )
    def test_submit_validation(self, db, subject, message, category, priority):
        with pytest.raises(ValueError):
            SupportService(db).submit_ticket(TEST_USER_ID, subject, message, category, priority)

    def test_user_reply_on_own_ticket(self, db, ticket):
        service = SupportService(db)
        service.reply(TEST_USER_ID, ticket["id"], "Any update?")
        assert db.rows("support_tickets")[0]["status"] == "open"
        assert service.responses(ticket["id"])[0]["is_admin_response"] is False

    def test_user_cannot_reply_to_others(self, db, ticket):
        with pytest.raises(NotFoundError):
            SupportService(db).reply("other-user", ticket["id"], "hello")

    def test_admin_reply_moves_to_in_progress(self, db, ticket):
        SupportService(db).reply("admin-1", ticket["id"], "Looking into it", is_admin=True)
        assert db.rows("support_tickets")[0]["status"] == "in_progress"

    def test_resolve_sets_timestamp(self, db, ticket):
        service = SupportService(db)
        service.update_status(ticket["id"], "resolved")
        row = db.rows("support_tickets")[0]
        assert row["status"] == "resolved"
        assert row["resolved_at"]

    def test_update_priority(self, db, ticket):
        SupportService(db).update_priority(ticket["id"], "urgent")
        assert db.rows("support_tickets")[0]["priority"] == "urgent"

    def test_update_unknown_ticket(self, db):
        with pytest.raises(NotFoundError):
            SupportService(db).update_status("missing", "closed")

    def test_admin_search(self, db, ticket):
        service = SupportService(db)
        service.submit_ticket("u2", "Billing question", "Charged twice", "billing")
        assert len(service.all_tickets()) == 2
        assert len(service.all_tickets(status="all")) == 2
        assert [t["subject"] for t in service.all_tickets(search="TWICE")] == ["Billing question"]
        assert [t["subject"] for t in service.all_tickets(status="open", search="log")] == ["Login issue"]

    def test_my_tickets(self, db, ticket):
        SupportService(db).submit_ticket("u2", "Other", "Other", "general")
        assert [t["id"] for t in SupportService(db).my_tickets(TEST_USER_ID)] == [ticket["id"]]
