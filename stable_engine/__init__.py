"""
stable_engine - Overcollateralized stable-unit engine

Accounts deposit collateral, mint stable units against it, and are liquidated
by third parties once their health factor drops below the minimum.

Usage:
    from stable_engine import (
        StableEngine, AssetRegistry, RegisteredAsset, TokenLedger,
        StaticPriceFeed, StalenessCheckedOracle, ManualClock,
    )

    clock = ManualClock(datetime(2024, 1, 1))
    weth = TokenLedger("WETH", "Wrapped Ether", owner="deployer")
    dsc = TokenLedger("DSC", "Decentralized Stable Coin", owner="deployer")
    feeds = {"ETH/USD": StaticPriceFeed(2_000 * 10**8, clock)}

    registry = AssetRegistry([RegisteredAsset("WETH", "ETH/USD", weth)])
    oracle = StalenessCheckedOracle(feeds, clock)
    engine = StableEngine(registry, oracle, dsc, address="engine")
    dsc.transfer_ownership("deployer", "engine")

    weth.mint("deployer", "alice", 10 * 10**18)
    weth.approve("alice", "engine", 10 * 10**18)
    engine.deposit_collateral_and_mint_stable_unit("alice", "WETH", 10 * 10**18, 5_000 * 10**18)
"""

# Core types
from .core import (
    PRECISION,
    FEED_DECIMALS,
    COLLATERAL_DECIMALS,
    ADDITIONAL_FEED_PRECISION,
    LIQUIDATION_THRESHOLD,
    LIQUIDATION_PRECISION,
    LIQUIDATION_BONUS,
    MIN_HEALTH_FACTOR,
    MAX_HEALTH_FACTOR,
    ZERO_ADDRESS,
    EngineParameters,
    AccountInformation,
    CollateralDeposited,
    CollateralRedeemed,
    EventLog,
    EngineError,
    InputError,
    NeedsMoreThanZero,
    InvalidAmount,
    TokenNotAllowed,
    ZeroAddress,
    BalanceUnderflow,
    BurnAmountExceedsBalance,
    InsufficientBalance,
    InsufficientAllowance,
    SolvencyError,
    BreaksHealthFactor,
    ExternalCallError,
    StalePrice,
    InvalidPrice,
    PriceUnavailable,
    TransferFailed,
    MintFailed,
    LiquidationError,
    HealthFactorOk,
    HealthFactorNotImproved,
    ReentrantCall,
    NotOwner,
    checked_sub,
    require_positive,
)

# Engine
from .engine import StableEngine

# Collateral registry
from .registry import AssetRegistry, RegisteredAsset

# Prices
from .oracle import (
    DEFAULT_TIMEOUT,
    RoundData,
    PriceReading,
    PriceFeed,
    PriceOracleAdapter,
    ManualClock,
    StaticPriceFeed,
    TimeSeriesPriceFeed,
    StalenessCheckedOracle,
)
from .valuation import (
    ValuationService,
    calculate_reference_value,
    calculate_asset_amount,
)

# Solvency
from .health import calculate_health_factor, is_healthy, max_mintable

# Ledgers
from .collateral import CollateralLedger
from .debt import DebtLedger
from .token import TokenLedger, CollateralAsset, StableUnitLedger, UNLIMITED_ALLOWANCE

# Liquidation
from .liquidation import LiquidationEngine, LiquidationResult, calculate_liquidation_bonus

# Guards
from .guards import ReentrancyGuard, GuardToken, Journaled, atomic

# Configuration
from .config import (
    EngineConfig,
    CollateralConfig,
    OracleConfig,
    load_config,
    configure_logging,
)

__all__ = [
    # Constants
    'PRECISION', 'FEED_DECIMALS', 'ADDITIONAL_FEED_PRECISION', 'COLLATERAL_DECIMALS',
    'LIQUIDATION_THRESHOLD', 'LIQUIDATION_PRECISION', 'LIQUIDATION_BONUS',
    'MIN_HEALTH_FACTOR', 'MAX_HEALTH_FACTOR', 'ZERO_ADDRESS',
    # Core types
    'EngineParameters', 'AccountInformation',
    'CollateralDeposited', 'CollateralRedeemed', 'EventLog',
    'checked_sub', 'require_positive',
    # Errors
    'EngineError', 'InputError', 'NeedsMoreThanZero', 'InvalidAmount',
    'TokenNotAllowed', 'ZeroAddress',
    'BalanceUnderflow', 'BurnAmountExceedsBalance', 'InsufficientBalance',
    'InsufficientAllowance',
    'SolvencyError', 'BreaksHealthFactor',
    'ExternalCallError', 'StalePrice', 'InvalidPrice', 'PriceUnavailable',
    'TransferFailed', 'MintFailed',
    'LiquidationError', 'HealthFactorOk', 'HealthFactorNotImproved',
    'ReentrantCall', 'NotOwner',
    # Engine
    'StableEngine',
    # Registry
    'AssetRegistry', 'RegisteredAsset',
    # Prices
    'DEFAULT_TIMEOUT', 'RoundData', 'PriceReading', 'PriceFeed', 'PriceOracleAdapter',
    'ManualClock', 'StaticPriceFeed', 'TimeSeriesPriceFeed', 'StalenessCheckedOracle',
    'ValuationService', 'calculate_reference_value', 'calculate_asset_amount',
    # Solvency
    'calculate_health_factor', 'is_healthy', 'max_mintable',
    # Ledgers
    'CollateralLedger', 'DebtLedger',
    'TokenLedger', 'CollateralAsset', 'StableUnitLedger', 'UNLIMITED_ALLOWANCE',
    # Liquidation
    'LiquidationEngine', 'LiquidationResult', 'calculate_liquidation_bonus',
    # Guards
    'ReentrancyGuard', 'GuardToken', 'Journaled', 'atomic',
    # Configuration
    'EngineConfig', 'CollateralConfig', 'OracleConfig', 'load_config', 'configure_logging',
]

__version__ = '1.0.0'
