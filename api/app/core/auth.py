from dataclasses import dataclass, field

ROLE_SCOPES: dict[str, frozenset[str]] = {
    "user": frozenset({"catalog:read"}),
    "admin": frozenset({"catalog:read", "catalog:write"}),
}


@dataclass(slots=True)
class Principal:
    subject: str
    role: str = "user"
    scopes: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def for_role(cls, subject: str, role: str) -> "Principal":
        return cls(subject=subject, role=role, scopes=ROLE_SCOPES.get(role, ROLE_SCOPES["user"]))

    def require_scopes(self, required: set[str]) -> None:
        missing = required - self.scopes
        if missing:
            raise PermissionError(f"missing required scopes: {sorted(missing)}")
