# Empty per-step payload templates.
# Step payloads are opaque to the workflow; these shapes only let a freshly
# created case render every field before any data exists.
import copy
from typing import Any, Dict

_PERSONAL_DETAILS: Dict[str, Any] = {
    "firstName": None,
    "middleNames": None,
    "lastName": None,
    "dateOfBirth": None,
    "address": None,
    "dateOfMarriage": None,
    "hasChildren": False,
    "fluentInEnglish": False,
    "nationality": None,
    "domicileResidencyStatus": None,
    "occupation": None,
    "incomeGBP": None,
    "overviewAim": None,
    "currentLivingSituation": None,
    "confirm_wenup_platform_used": False,
    "property_personal_possessions_remain": False,
    "family_home_divided_equally": False,
    "court_can_depart_for_children": False,
    "agree_costs_shared": False,
}

_SEPARATE_FINANCES: Dict[str, Any] = {
    "separateEarnings": False,
    "earningsEntries": [],
    "separateProperties": False,
    "propertyEntries": [],
    "separateSavings": False,
    "savingsEntries": [],
    "separatePensions": False,
    "pensionEntries": [],
    "separateDebts": False,
    "debtEntries": [],
    "separateBusinesses": False,
    "businessEntries": [],
    "separateChattels": False,
    "chattelEntries": [],
    "separateOtherAssets": False,
    "otherAssetEntries": [],
}

_JOINT_ASSETS: Dict[str, Any] = {
    "sharedEarnings": False,
    "sharedEarningsDetails": {},
    "sharedDebts": False,
    "sharedDebtsDetails": {},
    "sharedBusinesses": False,
    "sharedBusinessesDetails": {},
    "sharedChattels": False,
    "sharedChattelsDetails": {},
    "sharedOtherAssets": False,
    "sharedOtherAssetsDetails": {},
    "liveInRentedOrOwned": False,
    "sharedSavings": False,
    "sharedPensions": False,
}

_FUTURE_INHERITANCE: Dict[str, Any] = {
    "originalAmount": None,
    "originalCurrency": None,
    "gbpEquivalent": None,
    "basisOfEstimate": None,
}

_FUTURE_ASSETS: Dict[str, Any] = {
    "inheritanceConsideredSeparate": False,
    "giftConsideredSeparate": False,
    "futureAssetsTreatedJointOrSeparate": False,
    "willBeSameAsDivorceSplit": False,
    "wantWillHelp": False,
    "person1FutureInheritance": _FUTURE_INHERITANCE,
    "person2FutureInheritance": _FUTURE_INHERITANCE,
}

_AREAS_OF_COMPLEXITY: Dict[str, Any] = {
    "isOnePregnant": False,
    "isOnePregnantOverview": None,
    "businessWorkedTogether": False,
    "businessWorkedTogetherOverview": None,
    "oneOutOfWorkOrDependent": False,
    "oneOutOfWorkOverview": None,
    "familyHomeOwnedWith3rdParty": False,
    "familyHome3rdPartyOverview": None,
    "combinedAssetsOver3m": False,
    "combinedAssetsOver3mOverview": None,
    "childFromPreviousRelationshipsLivingWithYou": False,
    "childFromPreviousOverview": None,
    "additionalComplexities": {},
}

# Steps 3 and 4 mirror steps 1 and 2 for the partner.
STEP_TEMPLATES: Dict[int, Dict[str, Any]] = {
    1: _PERSONAL_DETAILS,
    2: _SEPARATE_FINANCES,
    3: _PERSONAL_DETAILS,
    4: _SEPARATE_FINANCES,
    5: _JOINT_ASSETS,
    6: _FUTURE_ASSETS,
    7: _AREAS_OF_COMPLEXITY,
}

STEP_TITLES: Dict[int, str] = {
    1: "Personal details (step 1)",
    2: "Your finances (step 2)",
    3: "Partner personal details (step 3)",
    4: "Partner finances (step 4)",
    5: "Joint assets (step 5)",
    6: "Future assets (step 6)",
    7: "Finalise & submit (step 7)",
}


def empty_step_data(step_number: int) -> Dict[str, Any]:
    return copy.deepcopy(STEP_TEMPLATES[step_number])


def merge_with_template(step_number: int, data: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay stored step data on the step's empty template.

    Nested dicts are merged one level down so partially filled sub-records
    (e.g. person1FutureInheritance) still expose every key. Stored values win.
    """
    merged = empty_step_data(step_number)
    for key, value in (data or {}).items():
        template_value = merged.get(key)
        if isinstance(template_value, dict) and isinstance(value, dict):
            merged[key] = {**template_value, **value}
        else:
            merged[key] = value
    return merged


def friendly_step_name(step_number: int) -> str:
    return STEP_TITLES.get(step_number, f"Step {step_number}")
