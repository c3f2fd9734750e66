"""Tests for the bucket policy document model."""

from __future__ import annotations

import json

import pytest

from s3_iam_cosi_driver.exceptions import InternalError, PolicyFormatError
from s3_iam_cosi_driver.policy.document import (
    ActionList,
    Effect,
    PolicyDocument,
    PolicyStatement,
    PrincipalSet,
    WildcardAction,
    WildcardPrincipal,
    allow_statement,
    bucket_resources,
    contains_principal,
    empty_policy,
    parse_policy,
    serialize_policy,
    without_principal,
)


def _document(*statements: PolicyStatement) -> PolicyDocument:
    return PolicyDocument(statements=tuple(statements))


class TestParsePolicy:
    """Test cases for parse_policy."""

    def test_parse_engine_statement(self):
        """Test parsing the statement shape the engine writes."""
        raw = json.dumps({
            "Version": "2012-10-17",
            "Statement": [{
                "Effect": "Allow",
                "Principal": {"AWS": ["AIDA1"]},
                "Action": ["s3:GetObject"],
                "Resource": ["arn:aws:s3:::b1", "arn:aws:s3:::b1/*"],
            }],
        })

        document = parse_policy(raw)

        assert document.version == "2012-10-17"
        assert len(document.statements) == 1
        statement = document.statements[0]
        assert statement.effect is Effect.ALLOW
        assert statement.principal == PrincipalSet(aws=("AIDA1",))
        assert statement.action == ActionList(("s3:GetObject",))
        assert statement.resource == ("arn:aws:s3:::b1", "arn:aws:s3:::b1/*")

    def test_parse_wildcards(self):
        """Test that wildcard principal and action become tagged variants."""
        raw = '{"Version": "2012-10-17", "Statement": [{"Effect": "Deny", "Principal": "*", "Action": "s3:*", "Resource": "arn:aws:s3:::b1"}]}'

        statement = parse_policy(raw).statements[0]

        assert statement.effect is Effect.DENY
        assert statement.principal == WildcardPrincipal()
        assert statement.action == WildcardAction()
        assert statement.resource == ("arn:aws:s3:::b1",)

    def test_parse_single_string_principal(self):
        """Test that a bare string AWS principal is accepted."""
        raw = '{"Statement": [{"Effect": "Allow", "Principal": {"AWS": "AIDA1"}, "Action": ["s3:GetObject"], "Resource": []}]}'

        statement = parse_policy(raw).statements[0]

        assert statement.principal == PrincipalSet(aws=("AIDA1",))
        assert statement.has_principal("AIDA1")

    def test_parse_single_statement_object(self):
        """Test that Statement given as an object is accepted."""
        raw = '{"Version": "2012-10-17", "Statement": {"Effect": "Allow", "Principal": "*", "Action": "s3:*", "Resource": []}}'

        assert len(parse_policy(raw).statements) == 1

    def test_parse_keeps_unmanaged_keys(self):
        """Test that Sid, Condition and other principal kinds survive."""
        raw = json.dumps({
            "Version": "2012-10-17",
            "Statement": [{
                "Sid": "ExternalRule",
                "Effect": "Allow",
                "Principal": {"Service": "logging.s3.amazonaws.com"},
                "Action": ["s3:PutObject"],
                "Resource": ["arn:aws:s3:::b1/*"],
                "Condition": {"Bool": {"aws:SecureTransport": "true"}},
            }],
        })

        statement = parse_policy(raw).statements[0]

        assert statement.principal == PrincipalSet(aws=(), others=(("Service", "logging.s3.amazonaws.com"),))
        assert dict(statement.extra) == {
            "Condition": {"Bool": {"aws:SecureTransport": "true"}},
            "Sid": "ExternalRule",
        }

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "[]",
            '{"Version": "2012-10-17"}',
            '{"Statement": "nope"}',
            '{"Statement": [{"Effect": "Maybe", "Action": "s3:*", "Resource": []}]}',
            '{"Statement": [{"Effect": "Allow", "Principal": 42, "Action": "s3:*", "Resource": []}]}',
            '{"Statement": [{"Effect": "Allow", "Action": [1, 2], "Resource": []}]}',
            '{"Statement": [{"Effect": "Allow", "Action": "s3:*", "Resource": {"a": 1}}]}',
            '{"Statement": ["not an object"]}',
        ],
    )
    def test_parse_invalid(self, raw):
        """Test that malformed documents raise PolicyFormatError."""
        with pytest.raises(PolicyFormatError):
            parse_policy(raw)

    def test_format_error_is_internal(self):
        """Test that format errors are reported as internal errors."""
        with pytest.raises(InternalError):
            parse_policy("{")


class TestSerializePolicy:
    """Test cases for serialize_policy."""

    def test_serialize_allow_statement(self):
        """Test the exact wire output for an engine statement."""
        document = _document(allow_statement("b1", "AIDA1", ["s3:GetObject"]))

        expected = json.dumps(
            {
                "Version": "2012-10-17",
                "Statement": [{
                    "Effect": "Allow",
                    "Principal": {"AWS": ["AIDA1"]},
                    "Action": ["s3:GetObject"],
                    "Resource": ["arn:aws:s3:::b1", "arn:aws:s3:::b1/*"],
                }],
            },
            indent=2,
        )
        assert serialize_policy(document) == expected

    def test_serialize_wildcards(self):
        """Test that wildcard variants serialize to bare strings."""
        statement = PolicyStatement(
            effect=Effect.ALLOW,
            principal=WildcardPrincipal(),
            action=WildcardAction(),
            resource=bucket_resources("b1"),
        )

        data = json.loads(serialize_policy(_document(statement)))

        assert data["Statement"][0]["Principal"] == "*"
        assert data["Statement"][0]["Action"] == "s3:*"

    def test_serialize_key_order(self):
        """Test managed keys come first and extra keys follow sorted."""
        statement = PolicyStatement(
            effect=Effect.ALLOW,
            principal=None,
            action=WildcardAction(),
            resource=(),
            extra=(("Condition", {}), ("Sid", "x")),
        )

        data = json.loads(serialize_policy(_document(statement)))

        assert list(data) == ["Version", "Statement"]
        assert list(data["Statement"][0]) == ["Effect", "Action", "Resource", "Condition", "Sid"]

    def test_parsed_statement_keeps_layout(self):
        """Test a parsed statement serializes back exactly as it was written."""
        statement = {
            "Sid": "x",
            "Resource": "arn:aws:s3:::b1/*",
            "Condition": {},
            "Action": "s3:GetObject",
            "Principal": {"Federated": "idp", "AWS": "AIDA9"},
            "Effect": "Allow",
        }
        raw = json.dumps({"Version": "2012-10-17", "Id": "team-policy", "Statement": [statement]}, indent=2)

        assert serialize_policy(parse_policy(raw)) == raw

    def test_edited_statement_keeps_layout(self):
        """Test removing one principal keeps the statement's key order and string forms."""
        raw = json.dumps({
            "Version": "2012-10-17",
            "Statement": [{
                "Sid": "shared",
                "Principal": {"AWS": ["AIDA1", "AIDA2"]},
                "Action": "s3:GetObject",
                "Resource": "arn:aws:s3:::b1/*",
                "Effect": "Allow",
            }],
        })

        data = json.loads(serialize_policy(without_principal(parse_policy(raw), "AIDA1")))

        assert data["Statement"] == [{
            "Sid": "shared",
            "Principal": {"AWS": ["AIDA2"]},
            "Action": "s3:GetObject",
            "Resource": "arn:aws:s3:::b1/*",
            "Effect": "Allow",
        }]
        assert list(data["Statement"][0]) == ["Sid", "Principal", "Action", "Resource", "Effect"]

    def test_round_trip_preserves_foreign_statements(self):
        """Test that statements written by others parse back unchanged."""
        raw = json.dumps({
            "Version": "2008-10-17",
            "Statement": [
                {"Sid": "a", "Effect": "Deny", "Principal": "*", "NotAction": "s3:GetObject", "Resource": "arn:aws:s3:::b1/*"},
                {"Effect": "Allow", "Principal": {"AWS": ["AIDA1", "AIDA2"], "Federated": "idp"}, "Action": "s3:*", "Resource": []},
            ],
        })
        document = parse_policy(raw)

        assert parse_policy(serialize_policy(document)) == document
        assert document.version == "2008-10-17"


class TestPrincipalQueries:
    """Test cases for contains_principal and without_principal."""

    def test_contains_principal_by_id(self):
        """Test membership is by id, never by wildcard or name."""
        document = _document(
            allow_statement("b1", "AIDA1", ["s3:GetObject"]),
            PolicyStatement(Effect.ALLOW, WildcardPrincipal(), WildcardAction(), bucket_resources("b1")),
        )

        assert contains_principal(document, "AIDA1")
        assert not contains_principal(document, "AIDA2")
        assert not contains_principal(document, "*")

    def test_without_principal_drops_empty_statements(self):
        """Test a statement whose only principal is removed disappears."""
        alice = allow_statement("b1", "AIDA1", ["s3:GetObject"])
        bob = allow_statement("b1", "AIDA2", ["s3:PutObject"])

        result = without_principal(_document(alice, bob), "AIDA1")

        assert result.statements == (bob,)

    def test_without_principal_keeps_shared_statement(self):
        """Test removing one id from a multi-principal statement keeps the rest."""
        shared = PolicyStatement(
            effect=Effect.ALLOW,
            principal=PrincipalSet(aws=("AIDA1", "AIDA2")),
            action=ActionList(("s3:GetObject",)),
            resource=bucket_resources("b1"),
            extra=(("Sid", "shared"),),
        )

        result = without_principal(_document(shared), "AIDA1")

        assert result.statements[0].principal == PrincipalSet(aws=("AIDA2",))
        assert result.statements[0].extra == (("Sid", "shared"),)

    def test_without_principal_keeps_other_principal_kinds(self):
        """Test a statement still naming a service principal is kept."""
        statement = PolicyStatement(
            effect=Effect.ALLOW,
            principal=PrincipalSet(aws=("AIDA1",), others=(("Service", "svc"),)),
            action=WildcardAction(),
            resource=bucket_resources("b1"),
        )

        result = without_principal(_document(statement), "AIDA1")

        assert result.statements[0].principal == PrincipalSet(aws=(), others=(("Service", "svc"),))
        assert json.loads(serialize_policy(result))["Statement"][0]["Principal"] == {"Service": "svc"}

    def test_without_principal_ignores_wildcard_and_missing(self):
        """Test wildcard and principal-less statements are untouched."""
        wildcard = PolicyStatement(Effect.DENY, WildcardPrincipal(), WildcardAction(), bucket_resources("b1"))
        no_principal = PolicyStatement(Effect.ALLOW, None, WildcardAction(), bucket_resources("b1"))
        document = _document(wildcard, no_principal)

        assert without_principal(document, "AIDA1") == document

    def test_empty_policy(self):
        """Test the empty document."""
        document = empty_policy()

        assert document.is_empty()
        assert document.version == "2012-10-17"
