"""
Contracts, documents and the schema validator seam.

A **contract** names a set of document types, each described by a JSON
Schema fragment (``properties``, ``required``, ...). A **document** is an
instance of one of those types, owned by an identity.

Validation is a consumed service: the pipeline talks to the
``SchemaValidator`` protocol and never inspects schemas itself. The
default ``JsonSchemaValidator`` checks contracts against the Draft 7
meta-schema and documents against their type's schema, via
``jsonschema``.

Contract id:
    contract_id = sha256(canonical_json_bytes({"name": ..., "documents": ...}))
"""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import jsonschema  # type: ignore[import-untyped]

from ledger_transitions.canonical import canonical_json_bytes, content_digest
from ledger_transitions.errors import InvalidArgument, ValidationError

# Contract format version; bump when the serialized shape changes.
CONTRACT_VERSION = 1

_DOCUMENT_TYPE_RE = re.compile(r"^[a-zA-Z0-9_-]{1,64}$")


# =========================================================================
# Types
# =========================================================================


@dataclass(frozen=True)
class Contract:
    """A named set of document type definitions."""

    name: str
    documents: dict[str, dict[str, Any]] = field(hash=False)
    version: int = CONTRACT_VERSION

    @property
    def contract_id(self) -> str:
        return content_digest({"name": self.name, "documents": self.documents})

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "documents": copy.deepcopy(self.documents),
        }

    def serialize(self) -> bytes:
        return canonical_json_bytes(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Contract:
        return cls(
            name=data["name"],
            documents=copy.deepcopy(data["documents"]),
            version=data.get("version", CONTRACT_VERSION),
        )


@dataclass(frozen=True)
class Document:
    """One application document, bound to a contract and an owner."""

    type: str
    data: dict[str, Any] = field(hash=False)
    contract_id: str
    owner_id: str
    revision: int = 1

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "$type": self.type,
            "$contractId": self.contract_id,
            "$userId": self.owner_id,
            "$rev": self.revision,
        }
        result.update(copy.deepcopy(self.data))
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Document:
        return cls(
            type=data["$type"],
            data={k: v for k, v in data.items() if not k.startswith("$")},
            contract_id=data["$contractId"],
            owner_id=data["$userId"],
            revision=data.get("$rev", 1),
        )


@dataclass(frozen=True)
class ValidationResult:
    """Validator answer. Empty ``errors`` means valid."""

    errors: tuple[str, ...] = field(default=())

    @property
    def is_valid(self) -> bool:
        return not self.errors


# =========================================================================
# Validator protocol
# =========================================================================


@runtime_checkable
class SchemaValidator(Protocol):
    """Interface for contract/document validation."""

    def validate_contract(self, contract: Contract) -> ValidationResult:
        """Check a contract definition."""
        ...

    def validate_document(
        self, document: Document, contract: Contract
    ) -> ValidationResult:
        """Check a document against its type in ``contract``."""
        ...


class JsonSchemaValidator:
    """Draft 7 JSON Schema implementation of SchemaValidator."""

    def validate_contract(self, contract: Contract) -> ValidationResult:
        errors: list[str] = []
        if not contract.name:
            errors.append("contract name must be non-empty")
        if not isinstance(contract.documents, dict) or not contract.documents:
            errors.append("contract must define at least one document type")
            return ValidationResult(tuple(errors))

        for doc_type, definition in sorted(contract.documents.items()):
            if not _DOCUMENT_TYPE_RE.match(doc_type):
                errors.append(f"{doc_type}: invalid document type name")
            if not isinstance(definition, dict):
                errors.append(f"{doc_type}: definition must be an object")
                continue
            if not definition.get("properties"):
                errors.append(f"{doc_type}: must define at least one property")
            for schema_error in _meta_schema_errors(definition):
                errors.append(f"{doc_type}: {schema_error}")

        return ValidationResult(tuple(errors))

    def validate_document(
        self, document: Document, contract: Contract
    ) -> ValidationResult:
        definition = contract.documents.get(document.type)
        if definition is None:
            return ValidationResult(
                (f"unknown document type {document.type!r} for contract {contract.name!r}",)
            )
        if document.contract_id != contract.contract_id:
            return ValidationResult(("document belongs to a different contract",))

        schema = {"type": "object", **definition}
        validator = jsonschema.Draft7Validator(
            schema, format_checker=jsonschema.FormatChecker()
        )
        messages = [
            _format_error(error) for error in validator.iter_errors(document.data)
        ]
        return ValidationResult(tuple(sorted(messages)))


def _meta_schema_errors(definition: dict[str, Any]) -> list[str]:
    meta = jsonschema.Draft7Validator(jsonschema.Draft7Validator.META_SCHEMA)
    return sorted(_format_error(error) for error in meta.iter_errors(definition))


def _format_error(error: jsonschema.ValidationError) -> str:
    path = "/".join(str(part) for part in error.absolute_path)
    return f"{path}: {error.message}" if path else error.message


# =========================================================================
# Factories
# =========================================================================


def create_contract(
    name: str,
    documents: dict[str, dict[str, Any]],
    validator: SchemaValidator,
) -> Contract:
    """Build and validate a contract.

    Raises:
        ValidationError: If the validator rejects the definition.
    """
    contract = Contract(name=name, documents=copy.deepcopy(documents))
    result = validator.validate_contract(contract)
    if not result.is_valid:
        raise ValidationError(
            "Contract is not valid",
            result.errors,
            details={"contract_name": name},
        )
    return contract


def create_document(
    doc_type: str,
    data: dict[str, Any],
    owner_id: str,
    contract: Contract,
    validator: SchemaValidator,
) -> Document:
    """Build and validate a document owned by ``owner_id``.

    Raises:
        InvalidArgument: If ``data`` uses reserved ``$`` keys.
        ValidationError: If the validator rejects the document.
    """
    reserved = sorted(k for k in data if k.startswith("$"))
    if reserved:
        raise InvalidArgument(
            f"document data must not use reserved keys: {reserved}",
        )

    document = Document(
        type=doc_type,
        data=copy.deepcopy(data),
        contract_id=contract.contract_id,
        owner_id=owner_id,
    )
    result = validator.validate_document(document, contract)
    if not result.is_valid:
        raise ValidationError(
            "Document is not valid",
            result.errors,
            details={"document_type": doc_type},
        )
    return document
