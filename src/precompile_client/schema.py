"""Interface schema registry.

Each functional domain (assets, delegation, rewards) is served by one
precompile address and a versioned ABI document under ``abis/``. A
DomainSchema binds the closed set of logical operations of its domain to
ABI function entries; a SchemaRegistry holds exactly one active
DomainSchema per domain, so the encoder for a destination can never be
mixed with a different schema version.

Example:
    >>> registry = SchemaRegistry.default()
    >>> descriptor = registry.resolve(Domain.DELEGATION, "undelegate")
    >>> descriptor.entry.signature
    'undelegate(uint32,bytes,bytes,bytes,uint256,bool)'
"""
import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Type, Union

from eth_utils.abi import collapse_if_tuple
from web3 import Web3
from web3.contract import Contract

from .constants import (
    ASSETS_PRECOMPILE_ADDRESS,
    DELEGATION_PRECOMPILE_ADDRESS,
    REWARD_PRECOMPILE_ADDRESS,
)
from .errors import InputEncodingError, UnsupportedOperationError
from .models import Domain

__all__ = [
    "AssetOperation",
    "DelegationOperation",
    "RewardOperation",
    "OPERATIONS",
    "ParamEncoding",
    "PARAMETER_ENCODINGS",
    "ParamSpec",
    "SchemaEntry",
    "DomainSchema",
    "OperationDescriptor",
    "SchemaRegistry",
    "SCHEMA_VERSIONS",
    "ACTIVE_VERSIONS",
    "PARAMETER_DEFAULTS",
]

# ABI file directory
ABI_DIR = Path(__file__).parent / "abis"


class AssetOperation(str, Enum):
    DEPOSIT = "deposit"
    DEPOSIT_NST = "deposit-nst"
    WITHDRAW = "withdraw"
    WITHDRAW_NST = "withdraw-nst"
    REGISTER_CLIENT_CHAIN = "register-client-chain"
    REGISTER_TOKEN = "register-token"
    UPDATE_TOKEN = "update-token"
    GET_CLIENT_CHAINS = "get-client-chains"
    IS_REGISTERED_CLIENT_CHAIN = "is-registered-client-chain"

    def __str__(self) -> str:
        return self.value


class DelegationOperation(str, Enum):
    DELEGATE = "delegate"
    UNDELEGATE = "undelegate"
    ASSOCIATE_OPERATOR = "associate-operator"
    DISSOCIATE_OPERATOR = "dissociate-operator"

    def __str__(self) -> str:
        return self.value


class RewardOperation(str, Enum):
    CLAIM_REWARD = "claim-reward"
    COMPOUND_REWARD = "compound-reward"
    DISTRIBUTE_REWARD = "distribute-reward"

    def __str__(self) -> str:
        return self.value


OPERATIONS: Mapping[Domain, Type[Enum]] = MappingProxyType({
    Domain.ASSET: AssetOperation,
    Domain.DELEGATION: DelegationOperation,
    Domain.REWARD: RewardOperation,
})

# Parameters that older or newer schema revisions add; filled in when the
# caller does not supply them.
PARAMETER_DEFAULTS: Mapping[str, Any] = MappingProxyType({
    "lzNonce": 0,
    "instantUnbond": False,
})


class ParamEncoding(str, Enum):
    """How a ``bytes`` parameter is canonicalized before ABI encoding."""

    # 20-byte address right-padded to 32 bytes, or a 32-byte blob as is
    IDENTIFIER = "identifier"
    # bech32 string carried as its UTF-8 bytes
    OPERATOR = "operator"
    # hex blob, unpadded
    RAW = "raw"


PARAMETER_ENCODINGS: Mapping[str, ParamEncoding] = MappingProxyType({
    "assetsAddress": ParamEncoding.IDENTIFIER,
    "stakerAddress": ParamEncoding.IDENTIFIER,
    "withdrawAddress": ParamEncoding.IDENTIFIER,
    "withdrawRewardAddress": ParamEncoding.IDENTIFIER,
    "token": ParamEncoding.IDENTIFIER,
    "operatorAddr": ParamEncoding.OPERATOR,
    "operator": ParamEncoding.OPERATOR,
    "validatorID": ParamEncoding.RAW,
    "staker": ParamEncoding.RAW,
})


@dataclass(frozen=True)
class _VersionBinding:
    address: str
    functions: Mapping[Enum, str]


_ASSET_FUNCTIONS = MappingProxyType({
    AssetOperation.DEPOSIT: "depositLST",
    AssetOperation.DEPOSIT_NST: "depositNST",
    AssetOperation.WITHDRAW: "withdrawLST",
    AssetOperation.WITHDRAW_NST: "withdrawNST",
    AssetOperation.REGISTER_CLIENT_CHAIN: "registerOrUpdateClientChain",
    AssetOperation.REGISTER_TOKEN: "registerToken",
    AssetOperation.UPDATE_TOKEN: "updateToken",
    AssetOperation.GET_CLIENT_CHAINS: "getClientChains",
    AssetOperation.IS_REGISTERED_CLIENT_CHAIN: "isRegisteredClientChain",
})

_DELEGATION_FUNCTIONS = MappingProxyType({
    DelegationOperation.DELEGATE: "delegate",
    DelegationOperation.UNDELEGATE: "undelegate",
    DelegationOperation.ASSOCIATE_OPERATOR: "associateOperatorWithStaker",
    DelegationOperation.DISSOCIATE_OPERATOR: "dissociateOperatorFromStaker",
})

_REWARD_FUNCTIONS = MappingProxyType({
    RewardOperation.CLAIM_REWARD: "claimReward",
    RewardOperation.COMPOUND_REWARD: "compoundReward",
    RewardOperation.DISTRIBUTE_REWARD: "distributeReward",
})

SCHEMA_VERSIONS: Mapping[Domain, Mapping[str, _VersionBinding]] = MappingProxyType({
    Domain.ASSET: MappingProxyType({
        "v1": _VersionBinding(ASSETS_PRECOMPILE_ADDRESS, _ASSET_FUNCTIONS),
    }),
    Domain.DELEGATION: MappingProxyType({
        # v1: explicit LayerZero nonce on delegate/undelegate
        "v1": _VersionBinding(DELEGATION_PRECOMPILE_ADDRESS, _DELEGATION_FUNCTIONS),
        # v2: nonce dropped, undelegate gains instantUnbond
        "v2": _VersionBinding(DELEGATION_PRECOMPILE_ADDRESS, _DELEGATION_FUNCTIONS),
    }),
    Domain.REWARD: MappingProxyType({
        "v1": _VersionBinding(REWARD_PRECOMPILE_ADDRESS, _REWARD_FUNCTIONS),
    }),
})

ACTIVE_VERSIONS: Mapping[Domain, str] = MappingProxyType({
    Domain.ASSET: "v1",
    Domain.DELEGATION: "v2",
    Domain.REWARD: "v1",
})


def _load_abi(domain: Domain, version: str) -> list:
    """Load the ABI document for one domain schema version.

    Args:
        domain: Functional domain
        version: Version tag (e.g., "v2")

    Returns:
        Parsed ABI list
    """
    return json.loads((ABI_DIR / f"{domain.value}_{version}.json").read_text())


def coerce_domain(domain: Union[Domain, str]) -> Domain:
    if isinstance(domain, Domain):
        return domain
    try:
        return Domain(str(domain).strip().lower())
    except ValueError:
        raise UnsupportedOperationError(domain, "*") from None


def coerce_operation(domain: Domain, operation: Union[Enum, str]) -> Enum:
    """Map an operation name or enum member onto the domain's closed enumeration."""
    enum_cls = OPERATIONS[domain]
    if isinstance(operation, enum_cls):
        return operation
    if isinstance(operation, Enum):
        # member of another domain's enumeration
        raise UnsupportedOperationError(domain, operation)
    name = str(operation).strip()
    try:
        return enum_cls(name.lower().replace("_", "-"))
    except ValueError:
        pass
    for member in enum_cls:
        if name.upper() == member.name:
            return member
    raise UnsupportedOperationError(domain, operation)


@dataclass(frozen=True)
class ParamSpec:
    """One ABI parameter: name, canonical type string, tuple components and,
    for ``bytes`` parameters, the canonical encoding of the value."""
    name: str
    type: str
    components: Tuple["ParamSpec", ...] = ()
    encoding: Optional[ParamEncoding] = None

    @classmethod
    def from_abi(cls, item: Mapping[str, Any]) -> "ParamSpec":
        name = item.get("name", "")
        typ = collapse_if_tuple(dict(item))
        return cls(
            name=name,
            type=typ,
            components=tuple(cls.from_abi(c) for c in item.get("components", ())),
            encoding=PARAMETER_ENCODINGS.get(name) if typ == "bytes" else None,
        )


@dataclass(frozen=True)
class SchemaEntry:
    """Call/return signature of one operation in one schema version."""
    domain: Domain
    operation: Enum
    function_name: str
    inputs: Tuple[ParamSpec, ...]
    outputs: Tuple[ParamSpec, ...]
    read_only: bool = False
    # web3 contract factory built from the domain's ABI document (no address, no provider)
    contract: Optional[Type[Contract]] = field(default=None, compare=False, repr=False)

    @property
    def arity(self) -> int:
        return len(self.inputs)

    @property
    def input_types(self) -> Tuple[str, ...]:
        return tuple(p.type for p in self.inputs)

    @property
    def output_types(self) -> Tuple[str, ...]:
        return tuple(p.type for p in self.outputs)

    @property
    def input_names(self) -> Tuple[str, ...]:
        return tuple(p.name for p in self.inputs)

    @property
    def identifiers(self) -> Tuple[str, ...]:
        """Names of the parameters canonicalized as 32-byte identifiers."""
        return tuple(p.name for p in self.inputs if p.encoding is ParamEncoding.IDENTIFIER)

    @property
    def signature(self) -> str:
        return f"{self.function_name}({','.join(self.input_types)})"

    def bind(self, arguments: Mapping[str, Any]) -> Tuple[Any, ...]:
        """Order named arguments by this entry's parameter list.

        Parameters missing from ``arguments`` fall back to PARAMETER_DEFAULTS.

        Raises:
            InputEncodingError: On a missing parameter without default, or an unknown name
        """
        unknown = set(arguments) - set(self.input_names)
        if unknown:
            raise InputEncodingError(
                f"{self.function_name} got unexpected arguments: {', '.join(sorted(unknown))}",
                details={"operation": str(self.operation)},
            )
        ordered = []
        for param in self.inputs:
            if param.name in arguments:
                ordered.append(arguments[param.name])
            elif param.name in PARAMETER_DEFAULTS:
                ordered.append(PARAMETER_DEFAULTS[param.name])
            else:
                raise InputEncodingError(
                    f"{self.function_name} missing argument {param.name!r}",
                    field=param.name,
                    details={"operation": str(self.operation)},
                )
        return tuple(ordered)


@dataclass(frozen=True)
class DomainSchema:
    """All operations of one domain at one schema version, bound to one address."""
    domain: Domain
    version: str
    address: str
    entries: Mapping[Enum, SchemaEntry] = field(default_factory=dict)

    @classmethod
    def load(cls, domain: Union[Domain, str], version: Optional[str] = None) -> "DomainSchema":
        """Build a schema from its ABI document.

        Raises:
            UnsupportedOperationError: If the domain or version is unknown
            ValueError: If the ABI document lacks a bound function
        """
        domain = coerce_domain(domain)
        version = version or ACTIVE_VERSIONS[domain]
        binding = SCHEMA_VERSIONS[domain].get(version)
        if binding is None:
            raise UnsupportedOperationError(domain, f"schema {version}")

        document = _load_abi(domain, version)
        contract = Web3().eth.contract(abi=document)
        abi = {item["name"]: item for item in document if item.get("type") == "function"}
        entries = {}
        for operation in OPERATIONS[domain]:
            function_name = binding.functions.get(operation)
            if function_name is None or function_name not in abi:
                raise ValueError(f"{domain} schema {version} does not define {operation}")
            item = abi[function_name]
            entries[operation] = SchemaEntry(
                domain=domain,
                operation=operation,
                function_name=function_name,
                inputs=tuple(ParamSpec.from_abi(p) for p in item.get("inputs", ())),
                outputs=tuple(ParamSpec.from_abi(p) for p in item.get("outputs", ())),
                read_only=item.get("stateMutability") in ("view", "pure"),
                contract=contract,
            )
        return cls(domain=domain, version=version, address=binding.address,
                   entries=MappingProxyType(entries))

    def entry(self, operation: Union[Enum, str]) -> SchemaEntry:
        return self.entries[coerce_operation(self.domain, operation)]


@dataclass(frozen=True)
class OperationDescriptor:
    """Resolved operation: domain, destination address and schema entry."""
    domain: Domain
    operation: Enum
    destination: str
    schema_version: str
    entry: SchemaEntry

    @property
    def name(self) -> str:
        return str(self.operation)


class SchemaRegistry:
    """Exactly one active DomainSchema per domain."""

    def __init__(self, schemas: Iterable[DomainSchema]):
        by_domain: Dict[Domain, DomainSchema] = {}
        for schema in schemas:
            if schema.domain in by_domain:
                raise ValueError(f"more than one schema supplied for {schema.domain}")
            by_domain[schema.domain] = schema
        missing = set(Domain) - set(by_domain)
        if missing:
            raise ValueError(f"no schema for domains: {', '.join(sorted(d.value for d in missing))}")
        self._schemas: Mapping[Domain, DomainSchema] = MappingProxyType(by_domain)

    @classmethod
    def default(cls, versions: Optional[Mapping[Union[Domain, str], str]] = None) -> "SchemaRegistry":
        """Load the active schema versions, optionally overriding some domains."""
        selected = dict(ACTIVE_VERSIONS)
        for domain, version in (versions or {}).items():
            selected[coerce_domain(domain)] = version
        return cls(DomainSchema.load(domain, version) for domain, version in selected.items())

    @property
    def versions(self) -> Dict[Domain, str]:
        return {domain: schema.version for domain, schema in self._schemas.items()}

    def schema(self, domain: Union[Domain, str]) -> DomainSchema:
        return self._schemas[coerce_domain(domain)]

    def operations(self, domain: Union[Domain, str]) -> Tuple[Enum, ...]:
        return tuple(self.schema(domain).entries)

    def resolve(self, domain: Union[Domain, str], operation: Union[Enum, str]) -> OperationDescriptor:
        """Resolve (domain, operation) to its destination address and schema entry.

        Raises:
            UnsupportedOperationError: For an unknown domain or operation
        """
        schema = self.schema(domain)
        entry = schema.entry(operation)
        return OperationDescriptor(
            domain=schema.domain,
            operation=entry.operation,
            destination=schema.address,
            schema_version=schema.version,
            entry=entry,
        )
