"""Payment provider clients used to look up authoritative transaction state."""

import os
import logging
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any

import stripe

from ..config import parse_int
from .models import ProviderTransactionStatus

logger = logging.getLogger(__name__)

# The only provider status treated as a completed payment
SUCCEEDED_STATUS = "succeeded"

DEFAULT_TIMEOUT_SECONDS = 20


class ProviderError(RuntimeError):
    """Raised when the provider cannot report a transaction's status."""


class ProviderClientBase(ABC):
    """Base class for payment provider clients."""

    #: Payment method identifier stored on orders paid through this provider
    payment_method: str = ""

    #: Human-readable provider name used in notes and messages
    provider_name: str = ""

    @abstractmethod
    def get_transaction_status(self, reference: str) -> ProviderTransactionStatus:
        """Fetch the current status of a transaction.

        Args:
            reference: The provider transaction reference.

        Returns:
            ProviderTransactionStatus snapshot.

        Raises:
            ProviderError: If the provider could not be queried.
        """
        raise NotImplementedError


class StripeProviderClient(ProviderClientBase):
    """Stripe client that reads PaymentIntent status."""

    payment_method = "stripe"
    provider_name = "Stripe"

    # Fields that should not be included in raw response for security
    SENSITIVE_FIELDS = frozenset([
        'client_secret',
        'payment_method',
        'source',
        'customer',
        'payment_method_details',
        'card',
        'bank_account',
    ])

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        """Initialize the Stripe client.

        Args:
            api_key: Stripe API key. Falls back to STRIPE_API_KEY env var.
            timeout: Per-request timeout in seconds. Falls back to
                STRIPE_TIMEOUT_SECONDS env var.

        Raises:
            ValueError: If no API key is provided or found.
        """
        self._api_key = api_key or os.getenv("STRIPE_API_KEY")
        if not self._api_key:
            raise ValueError(
                "STRIPE_API_KEY must be provided either as argument or environment variable"
            )
        if timeout is None:
            timeout = parse_int(
                os.getenv("STRIPE_TIMEOUT_SECONDS"),
                DEFAULT_TIMEOUT_SECONDS,
                "STRIPE_TIMEOUT_SECONDS",
            )
        self.timeout = timeout
        self._http_client = stripe.RequestsClient(timeout=self.timeout)
        self._configure_stripe()

    def _configure_stripe(self) -> None:
        """Point the Stripe SDK at this client's key and bounded HTTP client."""
        stripe.api_key = self._api_key
        stripe.max_network_retries = 0
        stripe.default_http_client = self._http_client

    def _sanitize_response(self, raw_response: Dict[str, Any]) -> Dict[str, Any]:
        """Remove sensitive fields from the raw response.

        Args:
            raw_response: Raw response dictionary from Stripe.

        Returns:
            Sanitized response dictionary.
        """
        if not raw_response:
            return {}
        sanitized = {}
        for key, value in raw_response.items():
            if key in self.SENSITIVE_FIELDS:
                continue
            if isinstance(value, dict):
                sanitized[key] = self._sanitize_response(value)
            else:
                sanitized[key] = value
        return sanitized

    def _convert_payment_intent(self, payment_intent: Any) -> ProviderTransactionStatus:
        raw_dict = payment_intent.to_dict() if hasattr(payment_intent, 'to_dict') else {}
        currency = getattr(payment_intent, "currency", None)

        return ProviderTransactionStatus(
            reference=payment_intent.id,
            status=payment_intent.status,
            amount=getattr(payment_intent, "amount", None),
            currency=currency.upper() if isinstance(currency, str) else None,
            raw_data=self._sanitize_response(raw_dict),
        )

    def get_transaction_status(self, reference: str) -> ProviderTransactionStatus:
        """Retrieve a PaymentIntent and report its status.

        Args:
            reference: The Stripe PaymentIntent ID.

        Returns:
            ProviderTransactionStatus for the PaymentIntent.

        Raises:
            ProviderError: On any Stripe API or connection failure.
        """
        try:
            pi = stripe.PaymentIntent.retrieve(reference, api_key=self._api_key)
            return self._convert_payment_intent(pi)
        except stripe.AuthenticationError as e:
            logger.error("Stripe authentication failed")
            raise ProviderError("Invalid Stripe API key") from e
        except stripe.APIConnectionError as e:
            logger.error(f"Failed to connect to Stripe API while fetching {reference}")
            raise ProviderError("Failed to connect to Stripe API") from e
        except stripe.InvalidRequestError as e:
            logger.warning(f"PaymentIntent {reference} could not be retrieved: {e}")
            raise ProviderError(f"Invalid payment intent {reference}: {e.user_message or e}") from e
        except stripe.StripeError as e:
            logger.error(f"Stripe API error for {reference}: {type(e).__name__}")
            raise ProviderError(f"Stripe API error: {e.user_message or e}") from e


def get_provider_client(
    provider: str = "stripe",
    api_key: Optional[str] = None,
) -> ProviderClientBase:
    """Factory function to get the appropriate provider client.

    Args:
        provider: Provider name.
        api_key: Optional API key for the provider.

    Returns:
        ProviderClientBase implementation for the provider.

    Raises:
        ValueError: If the provider is not supported or not configured.
    """
    clients = {
        "stripe": StripeProviderClient,
    }

    client_class = clients.get(provider.lower())
    if not client_class:
        raise ValueError(f"Unsupported payment provider: {provider}")

    return client_class(api_key=api_key)


def load_provider_client(
    provider: str = "stripe",
    api_key: Optional[str] = None,
) -> Optional[ProviderClientBase]:
    """Build a provider client, returning None when it cannot be configured.

    Hosts pass the result straight to the engine, which reports a missing
    client as an unavailable dependency.
    """
    try:
        return get_provider_client(provider, api_key=api_key)
    except ValueError as e:
        logger.warning(f"Payment provider '{provider}' unavailable: {e}")
        return None
