import pytest
from pydantic import ValidationError

from column_governance.models import (
    NDMO_CLASSIFICATIONS,
    ClassificationOutput,
    ColumnRecord,
    find_duplicate_names,
    parse_column_names,
)


def test_ndmo_levels():
    assert NDMO_CLASSIFICATIONS == ("Top Secret", "Secret", "Restricted", "Public")


def test_record_defaults():
    record = ColumnRecord(columnName="email")
    assert record.id is None
    assert record.description == ""
    assert record.ndmo_classification == "Public"
    assert record.reason_ndmo is None
    assert record.flags() == {"pii": False, "phi": False, "pfi": False, "psi": False, "pci": False}


def test_record_accepts_camel_and_snake_case():
    camel = ColumnRecord.model_validate(
        {"columnName": "salary", "ndmoClassification": "Secret", "reasonNdmo": "Compensation data", "pfi": True}
    )
    snake = ColumnRecord.model_validate(
        {"column_name": "salary", "ndmo_classification": "Secret", "reason_ndmo": "Compensation data", "pfi": True}
    )
    assert camel == snake


def test_record_json_uses_camel_case_keys():
    record = ColumnRecord(id="1", column_name="card_number", ndmo_classification="Restricted", pci=True)
    assert record.to_json() == {
        "id": "1",
        "columnName": "card_number",
        "description": "",
        "ndmoClassification": "Restricted",
        "reasonNdmo": None,
        "pii": False,
        "phi": False,
        "pfi": False,
        "psi": False,
        "pci": True,
    }


@pytest.mark.parametrize("value", [None, "", "  "])
def test_missing_classification_defaults_to_public(value):
    assert ColumnRecord(columnName="x", ndmoClassification=value).ndmo_classification == "Public"


def test_classification_case_is_normalized():
    assert ColumnRecord(columnName="x", ndmoClassification="top secret").ndmo_classification == "Top Secret"


def test_unknown_classification_is_rejected():
    with pytest.raises(ValidationError):
        ColumnRecord(columnName="x", ndmoClassification="Confidential")


@pytest.mark.parametrize("name", ["", "   "])
def test_blank_column_name_is_rejected(name):
    with pytest.raises(ValidationError):
        ColumnRecord(columnName=name)


def test_flags_are_independent():
    record = ColumnRecord(columnName="x", phi=True, pci=True)
    assert record.flags() == {"pii": False, "phi": True, "pfi": False, "psi": False, "pci": True}


def test_classification_output_to_record():
    output = ClassificationOutput.model_validate(
        {
            "description": "Card number",
            "ndmoClassification": "Secret",
            "reason_ndmo": "Cardholder data",
            "pii": False,
            "phi": False,
            "pfi": True,
            "psi": False,
            "pci": True,
        }
    )
    record = output.to_record("card_number", "abc")
    assert record.id == "abc"
    assert record.column_name == "card_number"
    assert record.reason_ndmo == "Cardholder data"
    assert record.pci is True and record.pfi is True


def test_classification_output_rejects_string_booleans():
    with pytest.raises(ValidationError):
        ClassificationOutput.model_validate(
            {
                "description": "d",
                "ndmoClassification": "Public",
                "reason_ndmo": "r",
                "pii": "yes",
                "phi": False,
                "pfi": False,
                "psi": False,
                "pci": False,
            }
        )


def test_find_duplicate_names():
    records = [ColumnRecord(columnName=n) for n in ("email", "phone", "email", "Email")]
    assert find_duplicate_names(records) == {"email"}


def test_parse_column_names_skips_blank_lines():
    assert parse_column_names("customer_id\n\n  email \r\ncard_number\n") == ["customer_id", "email", "card_number"]
