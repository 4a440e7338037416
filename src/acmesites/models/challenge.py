"""Challenge proofs and their local projection, :class:`ChallengeResult`.

A proof is a tagged variant: :class:`HttpProof` or :class:`DnsProof`.
Consumers dispatch with ``match`` and close with
:func:`typing.assert_never` so a new variant cannot be silently ignored.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, assert_never


@dataclass(frozen=True)
class HttpProof:
    """HTTP-01 proof: file *value* served at *path* (site-relative), reachable at *url*."""

    path: str
    value: str
    url: str


@dataclass(frozen=True)
class DnsProof:
    """DNS-01 proof: TXT *value* published at the fully-qualified *record_name*."""

    record_name: str
    value: str


Proof = HttpProof | DnsProof


@dataclass(frozen=True)
class ChallengeResult:
    url: str
    dns_name: str
    proof: Proof

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"url": self.url, "dns_name": self.dns_name}
        match self.proof:
            case HttpProof(path=path, value=value, url=resource_url):
                data.update(kind="http", path=path, value=value, resource_url=resource_url)
            case DnsProof(record_name=record_name, value=value):
                data.update(kind="dns", record_name=record_name, value=value)
            case _:
                assert_never(self.proof)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChallengeResult:
        proof: Proof
        if data["kind"] == "http":
            proof = HttpProof(
                path=data["path"],
                value=data["value"],
                url=data["resource_url"],
            )
        elif data["kind"] == "dns":
            proof = DnsProof(record_name=data["record_name"], value=data["value"])
        else:
            msg = f"Unknown proof kind {data['kind']!r}"
            raise ValueError(msg)
        return cls(url=data["url"], dns_name=data["dns_name"], proof=proof)
