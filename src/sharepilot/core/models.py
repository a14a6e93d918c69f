from dataclasses import dataclass, field
from typing import Any, Dict, List

from .exceptions import ConfigurationError
from .vault import Vault

REQUIRED_FIELDS = {
    "dp_id": "dpId",
    "username": "username",
    "password": "password",
    "crn_number": "crnNumber",
    "pin": "pin",
}


@dataclass
class StoredAccount:
    """An account record as persisted: secret fields are always ciphertext."""
    id: str
    fullname: str
    boid: str
    dp_id: str
    username: str
    password: str
    crn_number: str
    pin: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert the record to its on-disk representation."""
        return {
            'id': self.id,
            'fullname': self.fullname,
            'boid': self.boid,
            'dpId': self.dp_id,
            'username': self.username,
            'password': self.password,
            'crnNumber': self.crn_number,
            'pin': self.pin,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StoredAccount':
        """Create a StoredAccount from its on-disk representation."""
        return cls(
            id=data.get('id', ''),
            fullname=data.get('fullname', ''),
            boid=str(data.get('boid', '')),
            dp_id=str(data.get('dpId', '')),
            username=data.get('username', ''),
            password=data.get('password', ''),
            crn_number=data.get('crnNumber', ''),
            pin=data.get('pin', ''),
        )

    def unseal(self, vault: Vault) -> 'Account':
        """Decrypt the secret fields into an in-memory Account.

        Raises:
            DecryptionError: If any secret field cannot be decrypted
        """
        return Account(
            id=self.id,
            fullname=self.fullname,
            boid=self.boid,
            dp_id=self.dp_id,
            username=self.username,
            password=vault.decrypt(self.password),
            crn_number=vault.decrypt(self.crn_number),
            pin=vault.decrypt(self.pin),
        )


@dataclass
class Account:
    """An account ready for use: secret fields are plaintext and never persisted."""
    id: str
    fullname: str
    boid: str
    dp_id: str
    username: str
    password: str = field(repr=False)
    crn_number: str = field(repr=False)
    pin: str = field(repr=False)

    def missing_fields(self) -> List[str]:
        return [name for attr, name in REQUIRED_FIELDS.items() if not getattr(self, attr)]

    def validate(self) -> None:
        """Raise ConfigurationError if a field required for a run is empty."""
        missing = self.missing_fields()
        if missing:
            raise ConfigurationError(f"Missing required credentials: {', '.join(missing)}")

    def seal(self, vault: Vault) -> StoredAccount:
        """Encrypt the secret fields for storage."""
        return StoredAccount(
            id=self.id,
            fullname=self.fullname,
            boid=self.boid,
            dp_id=self.dp_id,
            username=self.username,
            password=vault.encrypt(self.password),
            crn_number=vault.encrypt(self.crn_number),
            pin=vault.encrypt(self.pin),
        )
