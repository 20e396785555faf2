"""Minimal ABIs for the legacy and successor reward escrow contracts."""

# Legacy RewardEscrow (reads + the event used for account discovery)
LEGACY_ESCROW_ABI = [
    {
        "inputs": [{"name": "account", "type": "address"}],
        "name": "totalEscrowedAccountBalance",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "account", "type": "address"}],
        "name": "totalVestedAccountBalance",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    # Flat interleaved [timestamp0, amount0, timestamp1, amount1, ...]
    {
        "inputs": [{"name": "account", "type": "address"}],
        "name": "checkAccountSchedule",
        "outputs": [{"name": "", "type": "uint256[520]"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "totalEscrowedBalance",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "beneficiary", "type": "address"},
            {"indexed": False, "name": "time", "type": "uint256"},
            {"indexed": False, "name": "value", "type": "uint256"},
        ],
        "name": "VestingEntryCreated",
        "type": "event",
    },
]

# Successor RewardEscrowV2 (reads + the two migration entry points)
SUCCESSOR_ESCROW_ABI = [
    {
        "inputs": [{"name": "account", "type": "address"}],
        "name": "totalEscrowedAccountBalance",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "account", "type": "address"}],
        "name": "numVestingEntries",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "migrateEntriesThresholdAmount",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "totalEscrowedBalance",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "accounts", "type": "address[]"},
            {"name": "escrowBalances", "type": "uint256[]"},
            {"name": "vestedBalances", "type": "uint256[]"},
        ],
        "name": "migrateAccountEscrowBalances",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "accounts", "type": "address[]"},
            {"name": "escrowAmounts", "type": "uint256[]"},
        ],
        "name": "importVestingSchedule",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

VESTING_ENTRY_CREATED = "VestingEntryCreated"
