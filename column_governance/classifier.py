"""
AI column classification.

Renders a fixed prompt for one column name, sends it through the OpenAI client
to a chat-completions endpoint and validates the JSON answer. Each failure mode
raises its own ClassificationError subclass; classify_column() turns them into
results so a batch never stops on one bad name.
"""

import json
import logging
import re
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Sequence, Tuple

import openai
from openai import OpenAI
from pydantic import ValidationError

from . import config
from .models import NDMO_CLASSIFICATIONS, ClassificationOutput, ColumnRecord
from .results import ActionResult, ErrorKind, Failure, Success

logger = logging.getLogger(__name__)


class ClassificationError(Exception):
    """Base class for classification failures."""

    kind = ErrorKind.INVALID_OUTPUT


class ClassifierConfigurationError(ClassificationError):
    kind = ErrorKind.CONFIGURATION


class ClassifierTransportError(ClassificationError):
    kind = ErrorKind.TRANSPORT


class ClassifierHTTPError(ClassificationError):
    kind = ErrorKind.HTTP_STATUS

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class EmptyClassificationError(ClassificationError):
    kind = ErrorKind.EMPTY_RESPONSE


class ClassificationParseError(ClassificationError):
    kind = ErrorKind.PARSE


class InvalidClassificationError(ClassificationError):
    kind = ErrorKind.INVALID_OUTPUT


PROMPT_TEMPLATE = """You are a highly accurate data governance classification engine trained on ANB Bank's enterprise-wide data inventory and classification policy.

Your job is to classify database column names into appropriate sensitivity categories, based on ANB's domains.

ANB BANK DATA DOMAINS & COLUMN EXAMPLES:

**Customer Domain:**
- Retail Banking: customer_id, cif_id, phone_num, email, kyc_status, risk_score, customer_name, address_line1, nationality_code, birth_date
- Private Banking: hni_segment_code, relationship_manager_email, private_customer_details, wealth_category
- Corporate Banking: corporate_client_id, company_name, business_type, sama_category, edd_info
- Remittance: remittance_customer_id, sender_details, beneficiary_info

**Product Domain:**
- Retail Accounts: acid, foracid, virtual_acct, account_balance, dormant_status, minimum_balance, service_charges
- Retail Deposits: deposit_id, fixed_deposit_amt, deposit_tenure, interest_rate, maturity_date
- Retail Cards: card_number, card_type, expiry_date, card_limit, spending_pattern, reward_points
- Private Banking: premium_card_details, deposit_interest_rates, investment_products

**Transactions Domain:**
- Retail Transactions: tran_id, tran_amt, transaction_timestamp, transaction_location, transfer_acct
- Wholesale Transactions: high_value_tran_id, payment_method, ips_reference, sarie_ref, swift_code
- Private Banking: private_tran_volume, transaction_frequency, channel_used
- Treasury: fx_spot_rate, fx_forward_rate, derivative_position, banknote_transaction

**Risk Domain:**
- Market Risk: irrbp, liquidity_ratio, interest_rate_derivatives, trading_book_position, collateral_value
- Credit Risk: npl_ratio, coverage_ratio, risk_score, ifrs9_provision, concentration_risk
- Retail Credit Risk: personal_loan_risk, credit_card_risk, home_loan_indicator
- Operational Risk: operational_event_id, risk_assessment_score, control_effectiveness

**Finance Domain:**
- General Ledger: gl_code, posting_date, debit_amount, credit_amount, journal_entry_id
- Fixed Assets: asset_id, depreciation_rate, asset_category, lease_flag
- Budget: budget_line_item, allocated_amount, actual_spending, variance_pct

**Compliance Domain:**
- AML: customer_nationality, transaction_pattern, watchlist_match, suspicious_activity_flag
- Regulatory: sama_report_id, compliance_status, regulatory_breach_flag

**Human Resource Domain:**
- Compensation: emp_id, salary, bonus, benefits, native_lang_name, contact_num
- Performance: performance_rating, training_completion, promotion_eligibility

**Customer Care Domain:**
- Complaints: complaint_id, complaint_type, resolution_status, escalation_level
- Service: service_request_id, channel_used, response_time

**Legal Domain:**
- Case: case_id, litigation_status, court_schedule, legal_counsel_assigned
- Contracts: contract_id, contract_type, expiry_date, renewal_terms

**Nominee Info Domain:**
- Nominee: nom_name, nom_unique_id, nom_guard_name, nom_addr1, relationship_type

**Instructional Domain:**
- Instruction: instruction_id, account_mgr_id, acct_poa_as_name, instruction_type

CLASSIFICATION GUIDELINES:
- PII: Names, addresses, phone numbers, emails, national IDs, birth dates
- PHI: Health information (rare in banking)
- PFI: Account balances, transaction amounts, salary, financial metrics
- PSI: Payment system codes, routing info, transaction processing data
- PCI: Card numbers, expiry dates, CVV, cardholder data

Your task: Classify the following column name: `{column_name}`

You must respond with ONLY a valid JSON object (no markdown backticks, no explanation):
{{
  "description": "Brief literal description of what this column contains",
  "ndmoClassification": "one of: {ndmo_options}",
  "reason_ndmo": "give the reason based on the ndmoClassification why this ndmoClassification is selected in just under 5 words",
  "pii": boolean,
  "phi": boolean,
  "pfi": boolean,
  "psi": boolean,
  "pci": boolean
}}"""

_FENCED_JSON = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)


def build_prompt(column_name: str) -> str:
    return PROMPT_TEMPLATE.format(
        column_name=column_name,
        ndmo_options=", ".join(NDMO_CLASSIFICATIONS),
    )


def extract_json_object(content: str) -> Dict[str, Any]:
    """Parse the JSON object in a model reply, tolerating code fences and stray prose."""
    candidate = content.strip()
    fenced = _FENCED_JSON.search(candidate)
    if fenced:
        candidate = fenced.group(1).strip()
    elif not candidate.startswith("{"):
        start, end = candidate.find("{"), candidate.rfind("}")
        if start != -1 and end > start:
            candidate = candidate[start:end + 1]
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise ClassificationParseError(f"Model response is not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise ClassificationParseError("Model response is not a JSON object.")
    return parsed


class ColumnClassifier:
    """Client for the hosted model that classifies column names."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[OpenAI] = None,
    ):
        self.api_key = api_key if api_key is not None else config.openai_api_key()
        self.model = model or config.openai_model()
        self.base_url = (base_url or config.openai_base_url()).rstrip("/")
        self.timeout = timeout if timeout is not None else config.openai_timeout()
        self.client = client
        if self.client is None and self.api_key:
            options: Dict[str, Any] = {"api_key": self.api_key, "base_url": self.base_url, "max_retries": 0}
            if self.timeout is not None:
                options["timeout"] = self.timeout
            self.client = OpenAI(**options)

    def request_completion(self, prompt: str) -> str:
        """Send the prompt and return the raw message content."""
        if self.client is None:
            raise ClassifierConfigurationError("OPENAI_API_KEY is not set (Key Vault or .env)")
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                response_format={"type": "json_object"},
            )
        except openai.APIStatusError as e:
            raise ClassifierHTTPError(
                f"Classification model responded with HTTP {e.status_code}: {e.message}", e.status_code
            ) from e
        except openai.APIConnectionError as e:
            raise ClassifierTransportError(f"Could not reach the classification model: {e}") from e
        except openai.APIResponseValidationError as e:
            raise ClassificationParseError(f"Classification endpoint returned an unreadable body: {e}") from e
        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content or not str(content).strip():
            raise EmptyClassificationError(
                "AI failed to generate a classification. The model returned an empty response."
            )
        return str(content)

    def classify(self, column_name: str) -> ClassificationOutput:
        """Classify one column name; raises ClassificationError on any failure."""
        if not column_name or not column_name.strip():
            raise InvalidClassificationError("columnName must be a non-empty string.")
        content = self.request_completion(build_prompt(column_name.strip()))
        payload = extract_json_object(content)
        try:
            return ClassificationOutput.model_validate(payload)
        except ValidationError as e:
            raise InvalidClassificationError(
                f"Model response does not match the classification schema: {e.error_count()} error(s)"
            ) from e


def _failure_from(column_name: str, exc: ClassificationError) -> Failure:
    logger.warning(f'Error classifying column "{column_name}": {exc}')
    detail = str(exc)
    if isinstance(exc.__cause__, ValidationError):
        detail = str(exc.__cause__)
    return Failure(exc.kind, f"Failed to classify column: {exc}", error=detail)


def classify_column(column_name: str, classifier: Optional[ColumnClassifier] = None) -> ActionResult:
    """Classify one column name into the non-identity fields of a column record."""
    if not isinstance(column_name, str) or not column_name.strip():
        return Failure(ErrorKind.VALIDATION, "columnName (string) is required.")
    try:
        classifier = classifier or ColumnClassifier()
    except ValueError as e:
        return Failure(ErrorKind.CONFIGURATION, str(e))
    try:
        output = classifier.classify(column_name)
    except ClassificationError as e:
        return _failure_from(column_name, e)
    return Success(data={"classification": output})


def classify_columns(
    column_names: Sequence[str],
    classifier: Optional[ColumnClassifier] = None,
    max_workers: Optional[int] = None,
) -> List[Tuple[str, ActionResult]]:
    """Classify many names concurrently.

    Results keep the input order; each name succeeds or fails on its own.
    Workers share one classifier and its OpenAI client.
    Raises ValueError when the classifier settings are malformed.
    """
    names = [n.strip() for n in column_names if isinstance(n, str) and n.strip()]
    if not names:
        return []
    classifier = classifier or ColumnClassifier()
    workers = min(max_workers or config.classify_max_workers(), len(names))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(lambda name: classify_column(name, classifier), names))
    return list(zip(names, results))


def build_classified_records(results: Sequence[Tuple[str, ActionResult]]) -> List[ColumnRecord]:
    """Turn successful classifications into new column records with fresh ids."""
    records = []
    for name, result in results:
        if result.success:
            output: ClassificationOutput = result.data["classification"]
            records.append(output.to_record(name, str(uuid.uuid4())))
    return records
