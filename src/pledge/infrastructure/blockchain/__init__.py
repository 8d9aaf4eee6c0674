"""Blockchain infrastructure module."""

from pledge.infrastructure.blockchain.client import ChainClient, EVMClient
from pledge.infrastructure.blockchain.contracts import (
    ABILoader,
    ContractManager,
    get_abi_loader,
)
from pledge.infrastructure.blockchain.events import (
    EventParser,
    EventType,
    MintedToken,
    ParsedEvent,
)
from pledge.infrastructure.blockchain.layouts import (
    CampaignSnapshot,
    CreateCampaignParams,
    EditionInfo,
    get_layout,
)
from pledge.infrastructure.blockchain.registry import (
    ChainConfig,
    ChainRegistry,
    ContractBinding,
    ContractVersion,
    get_chain_registry,
)
from pledge.infrastructure.blockchain.signer import (
    SignerContext,
    SignerRole,
    get_signer,
)
from pledge.infrastructure.blockchain.transaction import (
    PENDING_TX_PLACEHOLDER,
    AttemptOutcome,
    ContractCall,
    SubmissionStatus,
    SubmitConfig,
    SubmitResult,
    TransactionAttempt,
    TransactionSubmitter,
    get_transaction_submitter,
)

__all__ = [
    # Client
    "ChainClient",
    "EVMClient",
    # Registry
    "ChainConfig",
    "ChainRegistry",
    "ContractBinding",
    "ContractVersion",
    "get_chain_registry",
    # Contracts
    "ABILoader",
    "ContractManager",
    "get_abi_loader",
    "CampaignSnapshot",
    "CreateCampaignParams",
    "EditionInfo",
    "get_layout",
    # Events
    "EventParser",
    "EventType",
    "MintedToken",
    "ParsedEvent",
    # Signers
    "SignerContext",
    "SignerRole",
    "get_signer",
    # Transactions
    "PENDING_TX_PLACEHOLDER",
    "AttemptOutcome",
    "ContractCall",
    "SubmissionStatus",
    "SubmitConfig",
    "SubmitResult",
    "TransactionAttempt",
    "TransactionSubmitter",
    "get_transaction_submitter",
]
