"""Constants for report settlement and distribution."""

# Scheme identifier used in the x402 payment challenge
SCHEME_EXACT = "exact"

# x402 protocol version of the payment challenge
X402_VERSION = 2

# Networks (CDP network name -> CAIP-2)
BASE_SEPOLIA = "base-sepolia"
BASE_MAINNET = "base"
NETWORK_TO_CAIP2 = {
    BASE_SEPOLIA: "eip155:84532",
    BASE_MAINNET: "eip155:8453",
}
NETWORK_TO_EXPLORER = {
    BASE_SEPOLIA: "https://sepolia.basescan.org",
    BASE_MAINNET: "https://basescan.org",
}
DEFAULT_NETWORK = BASE_SEPOLIA

# Token defaults (USDC)
DEFAULT_TOKEN_DECIMALS = 6

# Distribution weights
DEFAULT_HOST_SPLIT = "0.50"
DEFAULT_CURATOR_SPLIT = "0.30"
DEFAULT_PLATFORM_SPLIT = "0.20"
WEIGHT_EPSILON = 1e-9

# Beneficiary labels, in batch order
HOST = "host"
CURATOR = "curator"
PLATFORM = "platform"
BENEFICIARY_ORDER = (HOST, CURATOR, PLATFORM)

# Confirmation wait bounds (in seconds)
DEFAULT_CONFIRMATION_TIMEOUT_SECONDS = 120
DEFAULT_CONFIRMATION_POLL_SECONDS = 2

# Worker shutdown grace period (in seconds)
DEFAULT_DRAIN_TIMEOUT_SECONDS = 30

# User operation statuses
STATUS_COMPLETE = "complete"
STATUS_TIMEOUT = "timeout"

# ERC-20
ERC20_TRANSFER_SIGNATURE = "transfer(address,uint256)"

# Address format (20-byte hex, case-insensitive)
EVM_ADDRESS_REGEX = r"^0x[a-fA-F0-9]{40}$"

# HTTP surface
DEFAULT_PORT = 4021
DEFAULT_FACILITATOR_URL = "https://www.x402.org/facilitator"
DEFAULT_REPORTS_API_BASE = "https://cryptotwitter.space"
DEFAULT_REPORT_PRICE = "$0.01"
DEFAULT_X402_SERVER_BASE = "http://localhost:4021"
PAYMENT_HEADER = "PAYMENT-SIGNATURE"
LEGACY_PAYMENT_HEADER = "X-PAYMENT"
PAYMENT_REQUIRED_HEADER = "PAYMENT-REQUIRED"
PAYMENT_RESPONSE_HEADER = "PAYMENT-RESPONSE"

# Settlement queue bound
DEFAULT_MAX_PENDING_SETTLEMENTS = 1000

# Error messages
ERR_PAYMENT_REQUIRED = "Payment Required"
