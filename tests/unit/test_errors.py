"""Unit tests for domain errors."""

from guildchat.errors import (
    AlreadyMember,
    ChatError,
    Conflict,
    Forbidden,
    InviteExhausted,
    InviteExpired,
    NotFound,
    ValidationFailed,
)


class TestErrors:
    def test_status_codes(self):
        assert Forbidden().status_code == 403
        assert NotFound().status_code == 404
        assert ValidationFailed().status_code == 400
        assert Conflict().status_code == 409

    def test_invite_errors_are_conflicts(self):
        for cls in (InviteExpired, InviteExhausted, AlreadyMember):
            err = cls()
            assert isinstance(err, Conflict)
            assert err.status_code == 409

    def test_codes_are_distinct(self):
        codes = {cls.code for cls in (Forbidden, NotFound, ValidationFailed, InviteExpired, InviteExhausted, AlreadyMember)}
        assert len(codes) == 6

    def test_custom_detail(self):
        err = NotFound("Server not found")
        assert err.detail == "Server not found"
        assert str(err) == "Server not found"
        assert isinstance(err, ChatError)

    def test_default_detail(self):
        assert Forbidden().detail == "Access denied"
