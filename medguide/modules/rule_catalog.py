"""
MedGuide Clinical Rule Catalog
Static knowledge base of medication safety rules (Beers, STOPP/START,
drug-disease, drug-drug interactions, therapeutic duplication)
"""

import logging
import string
from functools import lru_cache
from types import MappingProxyType
from typing import Annotated, Any, Dict, Iterable, Iterator, List, Literal, Optional, Tuple, Union
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from medguide.schemas import AlertSeverity, SafetyAlert
from medguide.exceptions import RuleDefinitionError
from medguide.config import settings

logger = logging.getLogger(__name__)


# =============================================================================
# Rule Types
# =============================================================================

class RuleCategory(str, Enum):
    """Categories of clinical rules"""
    BEERS = "BEERS"
    STOPP_START = "STOPP_START"
    DRUG_DISEASE = "DRUG_DISEASE"
    INTERACTION = "INTERACTION"
    DUPLICATION = "DUPLICATION"


TEMPLATE_FIELDS = {"drug"}


def _require_non_blank(keywords: Tuple[str, ...]) -> Tuple[str, ...]:
    """An empty keyword would match every name"""
    if any(not keyword.strip() for keyword in keywords):
        raise ValueError("keywords must be non-empty strings")
    return keywords


class _RuleBase(BaseModel):
    """Fields shared by every rule variant"""
    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    category: RuleCategory
    severity: AlertSeverity
    description_template: str = Field(..., description="str.format template; {drug} is the matched name(s)")
    recommendation: str
    citation: str
    citation_url: Optional[str] = None
    drug_keywords: Tuple[str, ...] = Field(..., min_length=1)

    check_drug_keywords = field_validator("drug_keywords")(_require_non_blank)

    @field_validator("description_template")
    @classmethod
    def validate_template(cls, v: str) -> str:
        """Only the {drug} placeholder is available to templates"""
        fields = {name for _, name, _, _ in string.Formatter().parse(v) if name is not None}
        unknown = fields - TEMPLATE_FIELDS
        if unknown:
            raise ValueError(f"unknown template placeholders: {sorted(unknown)}")
        return v

    def describe(self, drug: str) -> str:
        return self.description_template.format(drug=drug)

    def create_alert(self, drug: str) -> SafetyAlert:
        """Build the alert for the matched drug name(s)"""
        return SafetyAlert(
            title=self.title,
            severity=self.severity,
            description=self.describe(drug),
            recommendation=self.recommendation,
            citation=self.citation,
            citation_url=self.citation_url,
        )


class SingleDrugRule(_RuleBase):
    """
    One active medication, optionally gated by age and patient conditions.
    Shared by Beers, STOPP/START and drug-disease rules.
    """
    check_type: Literal["SINGLE"] = "SINGLE"
    age_min: Optional[int] = Field(None, ge=0)
    required_conditions: Tuple[str, ...] = ()
    excluded_conditions: Tuple[str, ...] = ()

    check_conditions = field_validator("required_conditions", "excluded_conditions")(_require_non_blank)


class InteractionRule(_RuleBase):
    """An ordered pair of active medications with a known harmful interaction"""
    check_type: Literal["INTERACTION"] = "INTERACTION"
    interaction_drug_keywords: Tuple[str, ...] = Field(..., min_length=1)

    check_interaction_keywords = field_validator("interaction_drug_keywords")(_require_non_blank)


class DuplicationRule(_RuleBase):
    """Two or more active medications from the class named by drug_keywords"""
    check_type: Literal["DUPLICATION"] = "DUPLICATION"


ClinicalRule = Annotated[
    Union[SingleDrugRule, InteractionRule, DuplicationRule],
    Field(discriminator="check_type")
]

_rule_adapter = TypeAdapter(ClinicalRule)


# =============================================================================
# Rule Catalog
# =============================================================================

class RuleCatalog:
    """Immutable, ordered collection of clinical rules"""

    def __init__(self, rules: Iterable[Union[SingleDrugRule, InteractionRule, DuplicationRule]]):
        self._rules = tuple(rules)

        index = {}
        for rule in self._rules:
            if rule.id in index:
                raise RuleDefinitionError("duplicate rule id", rule_id=rule.id)
            index[rule.id] = rule
        self._index = MappingProxyType(index)

        self._single = tuple(r for r in self._rules if isinstance(r, SingleDrugRule))
        self._interactions = tuple(r for r in self._rules if isinstance(r, InteractionRule))
        self._duplications = tuple(r for r in self._rules if isinstance(r, DuplicationRule))

    def __iter__(self) -> Iterator[Union[SingleDrugRule, InteractionRule, DuplicationRule]]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._index

    def __repr__(self) -> str:
        return f"RuleCatalog(rules={len(self._rules)})"

    @property
    def single_drug_rules(self) -> Tuple[SingleDrugRule, ...]:
        return self._single

    @property
    def interaction_rules(self) -> Tuple[InteractionRule, ...]:
        return self._interactions

    @property
    def duplication_rules(self) -> Tuple[DuplicationRule, ...]:
        return self._duplications

    def get(self, rule_id: str) -> Optional[Union[SingleDrugRule, InteractionRule, DuplicationRule]]:
        return self._index.get(rule_id)

    def by_category(self, category: Union[RuleCategory, str]) -> List[Union[SingleDrugRule, InteractionRule, DuplicationRule]]:
        """Get all rules in a specific category"""
        category = RuleCategory(category)
        return [r for r in self._rules if r.category == category]

    def enabled(self, categories: Iterable[Union[RuleCategory, str]]) -> "RuleCatalog":
        """Sub-catalog restricted to the given categories, order preserved"""
        wanted = {RuleCategory(c) for c in categories}
        return RuleCatalog(r for r in self._rules if r.category in wanted)


def build_rule_catalog(definitions: Iterable[Union[Dict[str, Any], BaseModel]]) -> RuleCatalog:
    """
    Build a catalog from plain rule definitions.

    A definition without "check_type" is a SINGLE rule.

    Raises:
        RuleDefinitionError: On the first malformed definition
    """
    rules = []

    for position, definition in enumerate(definitions):
        if isinstance(definition, (SingleDrugRule, InteractionRule, DuplicationRule)):
            rules.append(definition)
            continue

        definition = dict(definition)
        definition.setdefault("check_type", "SINGLE")
        rule_id = definition.get("id") or f"#{position}"

        try:
            rules.append(_rule_adapter.validate_python(definition))
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise RuleDefinitionError(problems, rule_id=rule_id) from e

    return RuleCatalog(rules)


# =============================================================================
# Rule Definitions
# =============================================================================

BEERS_CITATION = "American Geriatrics Society 2023 Updated AGS Beers Criteria"
BEERS_URL = "https://agsjournals.onlinelibrary.wiley.com/doi/10.1111/jgs.18372"

STOPP_CITATION = "STOPP/START criteria for potentially inappropriate prescribing in older people: version 3 (O'Mahony et al., 2023)"
STOPP_URL = "https://doi.org/10.1007/s41999-023-00777-y"

INTERACTION_CITATION = "Stockley's Drug Interactions"

PPI_KEYWORDS = ["omeprazole", "pantoprazole", "lansoprazole", "esomeprazole", "rabeprazole", "dexlansoprazole"]
NSAID_KEYWORDS = [
    "ibuprofen", "naproxen", "diclofenac", "ketorolac", "indomethacin",
    "meloxicam", "ketoprofen", "celecoxib", "etoricoxib",
]
BENZODIAZEPINE_KEYWORDS = ["diazepam", "lorazepam", "alprazolam", "clonazepam", "temazepam", "midazolam", "triazolam"]
ANTICHOLINERGIC_KEYWORDS = [
    "diphenhydramine", "chlorpheniramine", "hydroxyzine", "promethazine",
    "amitriptyline", "nortriptyline", "doxepin",
]
CCB_KEYWORDS = [
    "amlodipine", "nifedipine", "felodipine", "lercanidipine", "lacidipine",
    "nicardipine", "isradipine", "diltiazem", "verapamil",
]
ACE_INHIBITOR_KEYWORDS = ["lisinopril", "enalapril", "ramipril", "perindopril", "captopril", "fosinopril"]
ARB_KEYWORDS = ["losartan", "valsartan", "irbesartan", "candesartan", "telmisartan", "olmesartan"]
ANTIPLATELET_KEYWORDS = ["aspirin", "clopidogrel", "ticagrelor", "prasugrel", "dipyridamole"]
ANTIPSYCHOTIC_KEYWORDS = [
    "haloperidol", "chlorpromazine", "risperidone", "olanzapine",
    "quetiapine", "prochlorperazine", "metoclopramide",
]
SSRI_KEYWORDS = ["sertraline", "fluoxetine", "citalopram", "escitalopram", "paroxetine", "fluvoxamine"]
CKD_CONDITIONS = ["ckd", "chronic kidney", "renal impairment", "renal failure", "renal insufficiency"]
HEART_FAILURE_CONDITIONS = ["heart failure", "chf", "hfref", "hfpef", "cardiac failure"]


BEERS_CRITERIA_RULES: List[Dict[str, Any]] = [
    {
        "id": "BEERS_PPI_ELDERLY",
        "title": "Beers Criteria: Proton Pump Inhibitors (PPI)",
        "drug_keywords": PPI_KEYWORDS,
        "age_min": 65,
        "severity": "MEDIUM",
        "description_template": "Long-term use of {drug} in older adults is associated with C. difficile infection, bone loss, and fractures.",
        "recommendation": "Avoid use >8 weeks unless for high-risk patients (e.g., oral corticosteroids, chronic NSAID use), erosive esophagitis, or pathological hypersecretory condition.",
    },
    {
        "id": "BEERS_NSAIDS_ELDERLY",
        "title": "Beers Criteria: NSAID Usage",
        "drug_keywords": NSAID_KEYWORDS,
        "age_min": 65,
        "severity": "HIGH",
        "description_template": "Use of {drug} increases risk of GI bleeding and peptic ulcer disease in older adults.",
        "recommendation": "Avoid chronic use. If necessary, use lowest effective dose for shortest duration and provide gastroprotection (PPI or Misoprostol).",
    },
    {
        "id": "BEERS_BENZOS",
        "title": "Beers Criteria: Benzodiazepines",
        "drug_keywords": BENZODIAZEPINE_KEYWORDS,
        "age_min": 65,
        "severity": "HIGH",
        "description_template": "Older adults have increased sensitivity to benzodiazepines like {drug} and decreased metabolism of long-acting agents. Increases risk of cognitive impairment, delirium, falls, fractures.",
        "recommendation": "Avoid use for treatment of insomnia, agitation, or delirium.",
    },
    {
        "id": "BEERS_ANTICHOLINERGIC",
        "title": "Beers Criteria: Anticholinergics",
        "drug_keywords": ANTICHOLINERGIC_KEYWORDS,
        "age_min": 65,
        "severity": "MEDIUM",
        "description_template": "{drug} is highly anticholinergic; risk of confusion, dry mouth, constipation, and toxicity.",
        "recommendation": "Avoid. Use non-anticholinergic alternatives.",
    },
    {
        "id": "BEERS_SULFONYLUREAS",
        "title": "Beers Criteria: Long-acting Sulfonylureas",
        "drug_keywords": ["glimepiride", "glyburide", "glibenclamide", "chlorpropamide"],
        "age_min": 65,
        "severity": "HIGH",
        "description_template": "{drug} has a prolonged half-life and carries a high risk of prolonged hypoglycemia in older adults.",
        "recommendation": "Avoid. Use shorter-acting agents like Glipizide or alternative classes (e.g., Metformin, DPP-4 inhibitors).",
    },
    {
        "id": "BEERS_TRAMADOL",
        "title": "Beers Criteria: Tramadol",
        "drug_keywords": ["tramadol"],
        "age_min": 65,
        "severity": "MEDIUM",
        "description_template": "{drug} is associated with increased risk of hyponatremia and SIADH in older adults.",
        "recommendation": "Monitor sodium levels closely upon initiation or dose changes.",
    },
    {
        "id": "BEERS_SLIDING_SCALE",
        "title": "Beers Criteria: Sliding Scale Insulin",
        "drug_keywords": ["sliding scale", "insulin sliding", "actrapid", "humulin r"],
        "age_min": 65,
        "severity": "HIGH",
        "description_template": "Sliding scale insulin regimens provide reactive rather than physiologic glucose control and increase risk of hypoglycemia/hyperglycemia.",
        "recommendation": "Avoid. Use basal-bolus insulin regimens.",
    },
    {
        "id": "BEERS_ALPHA_BLOCKERS",
        "title": "Beers Criteria: Alpha-1 Blockers",
        "drug_keywords": ["doxazosin", "prazosin", "terazosin"],
        "age_min": 65,
        "severity": "MEDIUM",
        "description_template": "{drug} has high risk of orthostatic hypotension in older adults.",
        "recommendation": "Avoid use as an antihypertensive.",
    },
    {
        "id": "BEERS_DIGOXIN",
        "title": "Beers Criteria: Digoxin",
        "drug_keywords": ["digoxin", "lanoxin"],
        "age_min": 65,
        "severity": "MEDIUM",
        "description_template": "Digoxin should generally be avoided as first-line for AF/HF. Dosages > 0.125mg/day increase toxicity risk in elderly due to decreased renal clearance.",
        "recommendation": "Avoid dosages > 0.125mg/day. Monitor levels.",
    },
]


STOPP_START_RULES: List[Dict[str, Any]] = [
    {
        "id": "STOPP_FALLS_RISK",
        "title": "STOPP Criteria: Fall Risk Medication",
        "drug_keywords": BENZODIAZEPINE_KEYWORDS + ANTIPSYCHOTIC_KEYWORDS + [
            "zolpidem", "zopiclone", "zaleplon", "doxazosin", "prazosin", "terazosin",
        ],
        "age_min": 65,
        "required_conditions": ["fall"],
        "severity": "HIGH",
        "description_template": "{drug} is prescribed to a patient with a history of falls; sedatives, neuroleptics and vasodilators impair balance and provoke postural hypotension.",
        "recommendation": "Review indication and taper or discontinue where possible. Perform a falls risk assessment.",
    },
    {
        "id": "STOPP_LOOP_DIURETIC_HTN",
        "title": "STOPP Criteria: Loop Diuretic for Hypertension",
        "drug_keywords": ["furosemide", "frusemide", "bumetanide", "torsemide", "torasemide"],
        "age_min": 65,
        "required_conditions": ["htn", "hypertension"],
        "excluded_conditions": HEART_FAILURE_CONDITIONS + ["oedema", "edema"],
        "severity": "MEDIUM",
        "description_template": "{drug} is used as first-line treatment of hypertension without heart failure; safer, more effective alternatives are available.",
        "recommendation": "Consider a thiazide-like diuretic, ACE inhibitor, ARB or calcium channel blocker instead.",
    },
    {
        "id": "STOPP_VASODILATOR_POSTURAL_HYPOTENSION",
        "title": "STOPP Criteria: Vasodilator with Postural Hypotension",
        "drug_keywords": CCB_KEYWORDS + ACE_INHIBITOR_KEYWORDS + ARB_KEYWORDS + [
            "doxazosin", "prazosin", "terazosin", "isosorbide", "nitroglycerin", "glyceryl trinitrate", "hydralazine",
        ],
        "age_min": 65,
        "required_conditions": ["postural hypotension", "orthostatic hypotension"],
        "severity": "HIGH",
        "description_template": "{drug} is a vasodilator prescribed to a patient with persistent postural hypotension; risk of syncope and falls.",
        "recommendation": "Reduce the dose or discontinue the vasodilator and monitor lying/standing blood pressure.",
    },
    {
        "id": "STOPP_BENZO_RESPIRATORY",
        "title": "STOPP Criteria: Benzodiazepine with Respiratory Failure",
        "drug_keywords": BENZODIAZEPINE_KEYWORDS,
        "age_min": 65,
        "required_conditions": ["respiratory failure", "obstructive sleep apnoea", "obstructive sleep apnea", "osa"],
        "severity": "HIGH",
        "description_template": "{drug} may worsen respiratory depression in a patient with respiratory failure or sleep apnoea.",
        "recommendation": "Avoid benzodiazepines; consider non-sedating alternatives.",
    },
]


DRUG_DISEASE_RULES: List[Dict[str, Any]] = [
    {
        "id": "DD_NSAID_CKD",
        "title": "Drug-Disease: NSAID in Chronic Kidney Disease",
        "drug_keywords": NSAID_KEYWORDS,
        "required_conditions": CKD_CONDITIONS,
        "severity": "HIGH",
        "description_template": "{drug} reduces renal perfusion and may accelerate decline in kidney function or precipitate acute kidney injury.",
        "recommendation": "Avoid NSAIDs in CKD. Use paracetamol or topical alternatives for analgesia.",
        "citation": "KDIGO 2024 Clinical Practice Guideline for the Evaluation and Management of CKD",
        "citation_url": "https://kdigo.org/guidelines/ckd-evaluation-and-management/",
    },
    {
        "id": "DD_METFORMIN_CKD",
        "title": "Drug-Disease: Metformin in Advanced CKD",
        "drug_keywords": ["metformin", "glucophage"],
        "required_conditions": [
            "ckd stage 4", "ckd stage 5", "ckd 4", "ckd 5", "stage 4 ckd", "stage 5 ckd",
            "end stage renal", "esrd", "dialysis",
        ],
        "severity": "HIGH",
        "description_template": "{drug} is contraindicated with eGFR below 30 mL/min/1.73m2 due to risk of lactic acidosis.",
        "recommendation": "Discontinue metformin. Consider an alternative glucose-lowering agent with appropriate renal dosing.",
        "citation": "KDIGO 2022 Clinical Practice Guideline for Diabetes Management in CKD",
        "citation_url": "https://kdigo.org/guidelines/diabetes-ckd/",
    },
    {
        "id": "DD_NSAID_HEART_FAILURE",
        "title": "Drug-Disease: NSAID in Heart Failure",
        "drug_keywords": NSAID_KEYWORDS,
        "required_conditions": HEART_FAILURE_CONDITIONS,
        "severity": "HIGH",
        "description_template": "{drug} promotes sodium and fluid retention and may exacerbate heart failure.",
        "recommendation": "Avoid NSAIDs. Use alternative analgesia.",
        "citation": BEERS_CITATION,
        "citation_url": BEERS_URL,
    },
    {
        "id": "DD_NONDHP_CCB_HEART_FAILURE",
        "title": "Drug-Disease: Non-dihydropyridine CCB in Heart Failure",
        "drug_keywords": ["diltiazem", "verapamil"],
        "required_conditions": HEART_FAILURE_CONDITIONS,
        "severity": "HIGH",
        "description_template": "{drug} has negative inotropic effects and may worsen heart failure with reduced ejection fraction.",
        "recommendation": "Avoid in HFrEF. Use beta-blockers for rate control where appropriate.",
        "citation": BEERS_CITATION,
        "citation_url": BEERS_URL,
    },
    {
        "id": "DD_ANTICHOLINERGIC_DEMENTIA",
        "title": "Drug-Disease: Anticholinergic in Dementia",
        "drug_keywords": ANTICHOLINERGIC_KEYWORDS,
        "required_conditions": ["dementia", "alzheimer", "cognitive impairment", "delirium"],
        "severity": "HIGH",
        "description_template": "{drug} has strong anticholinergic activity and may worsen cognition in dementia or delirium.",
        "recommendation": "Avoid. Review and deprescribe anticholinergic burden.",
        "citation": BEERS_CITATION,
        "citation_url": BEERS_URL,
    },
    {
        "id": "DD_ANTIPSYCHOTIC_PARKINSON",
        "title": "Drug-Disease: Dopamine Antagonist in Parkinson's Disease",
        "drug_keywords": ["haloperidol", "chlorpromazine", "risperidone", "olanzapine", "prochlorperazine", "metoclopramide"],
        "required_conditions": ["parkinson"],
        "severity": "HIGH",
        "description_template": "{drug} blocks dopamine receptors and may worsen parkinsonian symptoms.",
        "recommendation": "Avoid. If an antipsychotic is required, consider quetiapine, clozapine or pimavanserin.",
        "citation": BEERS_CITATION,
        "citation_url": BEERS_URL,
    },
]


INTERACTION_RULES: List[Dict[str, Any]] = [
    {
        "id": "INT_WARFARIN_PPI",
        "title": "Drug Interaction: Warfarin + Proton Pump Inhibitor",
        "drug_keywords": ["warfarin", "coumadin"],
        "interaction_drug_keywords": PPI_KEYWORDS,
        "severity": "HIGH",
        "description_template": "Concurrent {drug}: proton pump inhibitors may inhibit warfarin metabolism (CYP2C19), raising INR and bleeding risk.",
        "recommendation": "Monitor INR closely when starting, stopping or changing the PPI dose. Consider pantoprazole if a PPI is required.",
    },
    {
        "id": "INT_WARFARIN_NSAID",
        "title": "Drug Interaction: Warfarin + NSAID",
        "drug_keywords": ["warfarin", "coumadin"],
        "interaction_drug_keywords": NSAID_KEYWORDS,
        "severity": "HIGH",
        "description_template": "Concurrent {drug}: NSAIDs impair platelet function and damage gastric mucosa, markedly increasing bleeding risk with warfarin.",
        "recommendation": "Avoid combination. Use paracetamol for analgesia; if unavoidable, add gastroprotection and monitor INR.",
    },
    {
        "id": "INT_WARFARIN_ANTIPLATELET",
        "title": "Drug Interaction: Warfarin + Antiplatelet",
        "drug_keywords": ["warfarin", "coumadin"],
        "interaction_drug_keywords": ANTIPLATELET_KEYWORDS,
        "severity": "HIGH",
        "description_template": "Concurrent {drug}: combined anticoagulant and antiplatelet therapy substantially increases major bleeding risk.",
        "recommendation": "Confirm a specific indication for dual therapy (e.g., recent stent) and define its duration; otherwise stop the antiplatelet.",
    },
    {
        "id": "INT_CLOPIDOGREL_PPI",
        "title": "Drug Interaction: Clopidogrel + Omeprazole/Esomeprazole",
        "drug_keywords": ["clopidogrel", "plavix"],
        "interaction_drug_keywords": ["omeprazole", "esomeprazole"],
        "severity": "MEDIUM",
        "description_template": "Concurrent {drug}: CYP2C19 inhibition reduces activation of clopidogrel and may reduce its antiplatelet effect.",
        "recommendation": "Switch to pantoprazole or an H2-receptor antagonist if gastroprotection is required.",
    },
    {
        "id": "INT_RAAS_POTASSIUM",
        "title": "Drug Interaction: ACE Inhibitor/ARB + Potassium-Sparing Agent",
        "drug_keywords": ACE_INHIBITOR_KEYWORDS + ARB_KEYWORDS,
        "interaction_drug_keywords": ["spironolactone", "eplerenone", "amiloride", "triamterene", "potassium chloride"],
        "severity": "HIGH",
        "description_template": "Concurrent {drug}: risk of hyperkalaemia, particularly with renal impairment.",
        "recommendation": "Monitor serum potassium and renal function regularly; avoid potassium supplements unless hypokalaemic.",
    },
    {
        "id": "INT_SSRI_NSAID",
        "title": "Drug Interaction: SSRI + NSAID",
        "drug_keywords": SSRI_KEYWORDS,
        "interaction_drug_keywords": NSAID_KEYWORDS,
        "severity": "MEDIUM",
        "description_template": "Concurrent {drug}: SSRIs deplete platelet serotonin and, combined with NSAIDs, increase upper GI bleeding risk.",
        "recommendation": "Avoid combination or add gastroprotection with a PPI.",
    },
]


DUPLICATION_RULES: List[Dict[str, Any]] = [
    {
        "id": "DUP_CCB",
        "title": "Therapeutic Duplication: Calcium Channel Blockers",
        "drug_keywords": CCB_KEYWORDS,
        "severity": "MEDIUM",
        "description_template": "Multiple calcium channel blockers are active concurrently ({drug}), increasing the risk of hypotension, peripheral oedema and bradycardia.",
        "recommendation": "Confirm the combination is intentional; otherwise consolidate to a single agent at an optimised dose.",
    },
    {
        "id": "DUP_PPI",
        "title": "Therapeutic Duplication: Proton Pump Inhibitors",
        "drug_keywords": PPI_KEYWORDS,
        "severity": "LOW",
        "description_template": "More than one proton pump inhibitor is active ({drug}) with no additional benefit.",
        "recommendation": "Discontinue all but one PPI.",
    },
    {
        "id": "DUP_NSAID",
        "title": "Therapeutic Duplication: NSAIDs",
        "drug_keywords": NSAID_KEYWORDS,
        "severity": "HIGH",
        "description_template": "Multiple NSAIDs are active concurrently ({drug}), compounding GI bleeding and renal toxicity without added analgesic benefit.",
        "recommendation": "Use a single NSAID at the lowest effective dose, or switch to paracetamol.",
    },
    {
        "id": "DUP_RAAS",
        "title": "Therapeutic Duplication: ACE Inhibitor/ARB Combination",
        "drug_keywords": ACE_INHIBITOR_KEYWORDS + ARB_KEYWORDS,
        "severity": "HIGH",
        "description_template": "Dual renin-angiotensin blockade ({drug}) increases the risk of hyperkalaemia, hypotension and acute kidney injury.",
        "recommendation": "Avoid combination; continue a single RAAS blocker.",
    },
    {
        "id": "DUP_BENZO",
        "title": "Therapeutic Duplication: Benzodiazepines",
        "drug_keywords": BENZODIAZEPINE_KEYWORDS,
        "severity": "HIGH",
        "description_template": "Multiple benzodiazepines are active concurrently ({drug}), increasing sedation, falls and respiratory depression.",
        "recommendation": "Consolidate to a single agent and plan a taper.",
    },
]


def _tagged(category: RuleCategory, definitions: List[Dict[str, Any]], **defaults: Any) -> List[Dict[str, Any]]:
    """Apply category and shared defaults; a definition's own keys win"""
    return [{**defaults, **definition, "category": category} for definition in definitions]


DEFAULT_RULE_DEFINITIONS: Tuple[Dict[str, Any], ...] = tuple(
    _tagged(RuleCategory.BEERS, BEERS_CRITERIA_RULES, citation=BEERS_CITATION, citation_url=BEERS_URL)
    + _tagged(RuleCategory.STOPP_START, STOPP_START_RULES, citation=STOPP_CITATION, citation_url=STOPP_URL)
    + _tagged(RuleCategory.DRUG_DISEASE, DRUG_DISEASE_RULES)
    + _tagged(RuleCategory.INTERACTION, INTERACTION_RULES, check_type="INTERACTION", citation=INTERACTION_CITATION)
    + _tagged(RuleCategory.DUPLICATION, DUPLICATION_RULES, check_type="DUPLICATION", citation=STOPP_CITATION, citation_url=STOPP_URL)
)

# Built once at import; a malformed definition fails here, never during evaluation
DEFAULT_CATALOG = build_rule_catalog(DEFAULT_RULE_DEFINITIONS)
logger.debug(f"Loaded clinical rule catalog with {len(DEFAULT_CATALOG)} rules")


# =============================================================================
# Public API
# =============================================================================

@lru_cache(maxsize=None)
def _enabled_catalog(categories: Tuple[str, ...]) -> RuleCatalog:
    return DEFAULT_CATALOG.enabled(categories)


def get_rule_catalog() -> RuleCatalog:
    """Default catalog restricted to the categories enabled in settings"""
    return _enabled_catalog(tuple(settings.enabled_rule_categories()))
