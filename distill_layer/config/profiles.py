"""
Built-in distillation profiles and target normalization.

Profiles are built fresh for every run from the constant specs below
(optionally merged with a JSON file of overrides) and are immutable
once constructed. Nothing here caches a profile between runs.
"""

import copy
import json
import logging
import re
from pathlib import Path
from typing import Any, Optional

from ..src.schemas.profile import (
    DistillationProfile,
    FilterPatterns,
    SignalLists,
    ThemeDictionary,
    ThemeHeuristic,
)


logger = logging.getLogger(__name__)

DEFAULT_TARGET = "DOC"

MANDATORY_THEMES: tuple[str, ...] = (
    "Zero Trust",
    "CDM",
    "Identity/ICAM",
    "Cloud/FedRAMP",
    "IR/SOC",
    "SBOM/SCRM",
    "Governance/Compliance",
    "Budget/Vehicles/Small-biz",
)

THEME_CATALOG: tuple[ThemeDictionary, ...] = (
    ThemeDictionary(
        id="zero-trust",
        name="Zero Trust",
        acronyms=("ZTA", "ZTNA", "E3B"),
        exact_phrases=(
            "zero trust", "zero-trust architecture", "never trust always verify",
            "micro-segmentation", "implicit deny", "perimeter-less", "identity-centric",
        ),
        anchors=("NIST SP 800-207", "OMB M-22-09", "OMB M-24-04"),
        synonyms=(
            "perimeter-less security", "identity-centric access",
            "continuous verification", "least privilege",
        ),
        partial_matches=("trust", "verify", "identity", "segment", "access control"),
        exclusions=("trust relationship", "trusted partner", "zero tolerance"),
    ),
    ThemeDictionary(
        id="cdm",
        name="CDM",
        acronyms=("CDM", "ECDM"),
        exact_phrases=(
            "continuous diagnostics and mitigation", "cdm dashboard", "asset management",
            "hwam", "swam", "vulnerability management", "event management",
            "continuous monitoring",
        ),
        anchors=("CISA CDM", "FCEB dashboard", "Agency-Wide Adaptive Risk Enumeration"),
        synonyms=("continuous monitoring", "diagnostics program", "real-time monitoring"),
        partial_matches=("diagnostic", "monitor", "vulnerability", "asset", "dashboard", "real-time"),
        exclusions=("continuous improvement", "diagnostics lab"),
    ),
    ThemeDictionary(
        id="identity-icam",
        name="Identity/ICAM",
        acronyms=("ICAM", "PIV", "PKI", "MFA", "SSO", "FIDO2", "IdAM", "PAM", "CAC", "RBAC"),
        exact_phrases=(
            "identity credential and access management", "privileged access management",
            "role-based access control", "phishing-resistant authentication", "hspd-12",
            "multi-factor authentication", "single sign-on", "credential management",
            "identity governance",
        ),
        anchors=("OMB M-19-17", "NIST SP 800-63", "EO 14028"),
        synonyms=("identity governance", "authentication", "authorization", "identity verification"),
        partial_matches=("credential", "authentication", "authorization", "identity", "access", "privilege"),
        exclusions=("database identity column", "brand identity"),
    ),
    ThemeDictionary(
        id="cloud-fedramp",
        name="Cloud/FedRAMP",
        acronyms=("ATO", "IL2", "IL4", "IL5", "SaaS", "PaaS", "IaaS", "CSP", "CSPM", "CWP"),
        exact_phrases=(
            "fedramp authorized", "fedramp", "authority to operate", "ato package",
            "cloud migration", "govcloud", "multi-cloud", "container security", "kubernetes",
            "cloud service provider", "cloud posture", "aws", "azure", "gcp", "hybrid cloud",
        ),
        anchors=("FedRAMP Moderate", "FedRAMP High", "NIST SP 800-53"),
        synonyms=("cloud posture management", "cloud workload protection", "cloud security"),
        partial_matches=("cloud", "aws", "azure", "kubernetes", "container", "migration", "hybrid"),
        exclusions=("cloudy",),
    ),
    ThemeDictionary(
        id="ir-soc",
        name="IR/SOC",
        acronyms=("IR", "SOC", "SIEM", "SOAR", "MITRE ATT&CK", "NDR", "EDR", "XDR", "CSIRT"),
        exact_phrases=(
            "incident response playbook", "incident response", "soc operations",
            "security operations center", "threat hunting", "log aggregation",
            "endpoint detection", "tabletop exercise", "forensics", "breach response",
            "security event", "threat intelligence",
        ),
        anchors=("CISA playbooks", "FCD 1", "FCD 2"),
        synonyms=(
            "security operations", "major incident", "cyber event handling",
            "incident management", "threat detection",
        ),
        partial_matches=(
            "incident", "threat", "breach", "detection", "response",
            "forensic", "siem", "soar", "xdr",
        ),
        exclusions=("social", "HR incident"),
    ),
    ThemeDictionary(
        id="sbom-scrm",
        name="SBOM/SCRM",
        acronyms=("SBOM", "SCRM", "CSCRM", "SCA"),
        exact_phrases=(
            "software bill of materials", "supply chain risk management", "third-party risk",
            "software composition analysis", "secure by design", "vendor risk",
            "dependency vulnerability", "component inventory", "supply chain security",
            "vendor assessment",
        ),
        anchors=("EO 14028", "NIST SP 800-161", "CISA SBOM", "NTIA SBOM"),
        synonyms=(
            "component inventory", "dependency vulnerability", "bill of materials",
            "third party risk", "vendor management",
        ),
        partial_matches=("supply chain", "vendor", "third party", "dependency", "component", "software"),
        exclusions=("manufacturing BOM",),
    ),
    ThemeDictionary(
        id="governance-compliance",
        name="Governance/Compliance",
        acronyms=("FISMA", "RMF", "ATO", "POA&M", "CMMC", "HIPAA", "HITECH", "CJIS", "NIST"),
        exact_phrases=(
            "risk management framework", "control assessment", "policy governance",
            "continuous authorization", "plan of actions and milestones", "audit finding",
            "compliance posture", "control baselines", "security controls",
            "governance framework", "regulatory compliance",
        ),
        anchors=(
            "NIST SP 800-53", "NIST SP 800-37", "NIST SP 800-171",
            "OMB A-130", "DFARS 252.204-7012", "NIST CSF",
        ),
        synonyms=("cyber governance", "compliance management", "risk framework", "audit compliance"),
        partial_matches=(
            "compliance", "audit", "risk", "control", "policy", "governance",
            "regulation", "framework", "nist", "assessment", "authorization",
        ),
        exclusions=("corporate governance",),
    ),
    ThemeDictionary(
        id="budget-vehicles-smallbiz",
        name="Budget/Vehicles/Small-biz",
        acronyms=(
            "SEWP", "CIO-SP", "OASIS+", "BPA", "IDIQ", "8(a)", "ISBEE",
            "HUBZone", "WOSB", "SDVOSB", "GWAC",
        ),
        exact_phrases=(
            "obligation", "appropriation", "plus-up", "spend plan", "vehicle on-ramp",
            "idiq ceiling", "set-aside", "past performance", "contract value",
            "contract award", "procurement", "acquisition", "small business",
            "supplier diversity", "vendor", "fy20",
        ),
        anchors=("OMB passback", "exhibit 53", "exhibit 300", "OSDBU", "APEX"),
        synonyms=("contract vehicle", "small business utilization", "procurement strategy"),
        partial_matches=(
            "budget", "contract", "procurement", "acquisition", "vendor", "small business",
            "obligation", "spend", "fy", "$", "million", "billion",
        ),
        exclusions=("vehicle automotive",),
    ),
)

THEME_HEURISTICS: tuple[ThemeHeuristic, ...] = (
    ThemeHeuristic(
        pattern=r"\$\s?\d|\b(budget|contract|procurement|acquisition|obligation|spend|fy\s?\d{2,4}|million|billion)\b",
        theme="Budget/Vehicles/Small-biz",
    ),
    ThemeHeuristic(
        pattern=r"\b(compliance|audit|policy|control|risk|framework|nist|rmf|ato)\b",
        theme="Governance/Compliance",
    ),
    ThemeHeuristic(
        pattern=r"\b(cloud|aws|azure|gcp|saas|paas|iaas|kubernetes|container)\b",
        theme="Cloud/FedRAMP",
    ),
    ThemeHeuristic(
        pattern=r"\b(incident|threat|breach|detection|soar|siem|xdr)\b",
        theme="IR/SOC",
    ),
)

UNIVERSAL_SIGNALS: tuple[str, ...] = (
    # Zero Trust & identity
    "Zero Trust", "zero trust architecture", "ZTA", "ICAM", "identity management",
    "privileged access", "PAM",
    # Cloud & DevSecOps
    "DevSecOps", "CI/CD", "cloud security", "cloud migration", "FedRAMP", "IaaS", "PaaS", "SaaS",
    # Security operations
    "SOC", "Security Operations Center", "SIEM", "incident response", "threat hunting",
    "continuous monitoring", "CDM", "ECDM",
    # Compliance
    "FISMA", "NIST 800-53", "NIST CSF", "RMF", "ATO", "POA&M",
    # Emerging tech
    "artificial intelligence", "AI security", "machine learning", "quantum",
    "post-quantum cryptography", "PQC",
    # Network
    "TLS 1.3", "encryption", "PKI", "network segmentation", "microsegmentation",
    # Supply chain
    "supply chain", "SBOM", "software bill of materials", "third-party risk", "vendor risk",
    # Data protection
    "data loss prevention", "DLP", "data classification", "data governance", "privacy",
    # Vulnerability management
    "vulnerability", "patch management", "penetration testing", "security assessment", "STIG",
    # Logging
    "logging", "log management", "visibility", "monitoring", "audit trail",
)

DEFAULT_FILTER_PATTERNS = FilterPatterns(
    skip=(
        "table of contents", "acknowledgments", "acknowledgements", "preface", "foreword",
        "glossary", "appendix", "appendices", "references", "bibliography", "index",
        "list of figures", "list of tables", "about the authors", "copyright",
    ),
    always_keep=(
        "SHALL", "MUST", "REQUIRED", "OMB M-", "Executive Order", "million", "billion",
        "contract value", "obligation",
    ),
)

TARGET_SPECS: dict[str, dict[str, Any]] = {
    "DOC": {
        "target_name": "Department of Commerce",
        "aliases": (
            "DOC", "DEPT OF COMMERCE", "DEPARTMENT OF COMMERCE",
            "U.S. DEPARTMENT OF COMMERCE", "COMMERCE", "DEPT COMMERCE",
        ),
        "max_cards": 80,
        "max_per_document": 20,
        "min_per_topic": 2,
        "signals": {
            "priority_high": (
                "ECDM", "TLS 1.3", "HPC Security", "Enterprise Cybersecurity", "Zero Trust Architecture",
            ),
            "priority_med": (
                "supply chain", "DevSecOps", "cloud migration", "post-quantum cryptography", "PQC",
            ),
        },
        "mandate_phrases": ("OIG-25-006-A", "GAO-24-106137", "OMB M-", "FISMA", "FedRAMP"),
        "organizational_units": ("NIST", "USPTO", "NOAA", "Census", "ITA", "BIS", "EDA"),
        "scoring_weights": {"specificity": 0.4, "compliance": 0.35, "budget": 0.25},
    },
    "IRS": {
        "target_name": "Internal Revenue Service",
        "aliases": ("IRS", "INTERNAL REVENUE SERVICE", "TREASURY IRS", "REVENUE SERVICE"),
        "max_cards": 80,
        "max_per_document": 20,
        "min_per_topic": 2,
        "signals": {
            "priority_high": (
                "tax processing", "identity verification", "fraud detection",
                "return integrity", "FISMA POA&M",
            ),
            "priority_med": (
                "taxpayer data protection", "e-authentication", "Get Transcript", "payment systems",
            ),
        },
        "mandate_phrases": ("TIGTA", "GAO", "OMB M-", "FISMA", "Section 508"),
        "organizational_units": (
            "Criminal Investigation", "Large Business and International", "Small Business/Self-Employed",
        ),
        "scoring_weights": {"specificity": 0.35, "compliance": 0.4, "budget": 0.25},
    },
    "HHS": {
        "target_name": "Department of Health and Human Services",
        "aliases": (
            "HHS", "HEALTH AND HUMAN SERVICES", "DEPARTMENT OF HEALTH AND HUMAN SERVICES",
            "HEALTH HUMAN SERVICES", "DHHS",
        ),
        "max_cards": 80,
        "max_per_document": 20,
        "min_per_topic": 2,
        "signals": {
            "priority_high": (
                "HIPAA", "EHR", "PHI", "patient data", "healthcare.gov", "medical device security",
            ),
            "priority_med": (
                "telehealth", "drug supply chain", "clinical trials", "public health data",
            ),
        },
        "mandate_phrases": ("HIPAA", "HITECH", "GAO", "OIG", "OMB M-"),
        "organizational_units": ("CMS", "NIH", "CDC", "FDA", "HRSA", "SAMHSA", "IHS"),
        "scoring_weights": {"specificity": 0.35, "compliance": 0.45, "budget": 0.2},
    },
    "DOI": {
        "target_name": "Department of the Interior",
        "aliases": (
            "DOI", "INTERIOR", "DEPARTMENT OF THE INTERIOR", "U.S. DOI",
            "DEPT OF INTERIOR", "DEPARTMENT OF INTERIOR",
        ),
        "max_cards": 60,
        "max_per_document": 12,
        "min_per_topic": 2,
        "signals": {
            "priority_high": (
                "land management systems", "wildfire", "resource protection",
                "geospatial data", "critical minerals",
            ),
            "priority_med": (
                "park visitor systems", "wildlife tracking", "water resources",
                "tribal systems", "energy management",
            ),
        },
        "mandate_phrases": ("GAO", "OIG", "OMB M-", "FISMA", "FITARA"),
        "organizational_units": ("NPS", "USGS", "BLM", "FWS", "BOR", "BOEM", "BIA"),
        "scoring_weights": {"specificity": 0.35, "compliance": 0.35, "budget": 0.3},
    },
    "USACE": {
        "target_name": "U.S. Army Corps of Engineers",
        "aliases": (
            "USACE", "ARMY CORPS", "U.S. ARMY CORPS OF ENGINEERS", "CORPS OF ENGINEERS",
            "ACE", "ARMY CORPS OF ENGINEERS",
        ),
        "max_cards": 60,
        "max_per_document": 12,
        "min_per_topic": 2,
        "signals": {
            "priority_high": (
                "SCADA", "OT security", "critical infrastructure", "water resources", "dam safety", "CIP",
            ),
            "priority_med": (
                "navigation systems", "flood control", "hydropower",
                "environmental restoration", "military construction",
            ),
        },
        "mandate_phrases": ("GAO", "DODIG", "OMB M-", "FISMA", "Critical Infrastructure Protection"),
        "organizational_units": (
            "Civil Works", "Military Programs", "Research and Development", "Real Estate", "Contracting",
        ),
        "scoring_weights": {"specificity": 0.4, "compliance": 0.3, "budget": 0.3},
    },
}

PUNCTUATION_TO_SPACE = re.compile(r"[.,\-_]")
WHITESPACE = re.compile(r"\s+")


def _normalize_label(raw: str) -> str:
    text = WHITESPACE.sub(" ", raw.strip())
    text = PUNCTUATION_TO_SPACE.sub(" ", text)
    return WHITESPACE.sub(" ", text).strip().upper()


def known_targets(specs: Optional[dict[str, dict[str, Any]]] = None) -> list[str]:
    """Canonical identifiers of every configured target."""
    return list((specs or TARGET_SPECS).keys())


def target_full_name(target_id: str, specs: Optional[dict[str, dict[str, Any]]] = None) -> str:
    spec = (specs or TARGET_SPECS).get(target_id.upper())
    if spec and spec.get("target_name"):
        return spec["target_name"]
    return target_id


def match_target(raw: Optional[str], specs: Optional[dict[str, dict[str, Any]]] = None) -> Optional[str]:
    """Longest alias match on word boundaries, or None."""
    specs = specs or TARGET_SPECS
    if not raw or not raw.strip():
        return None

    padded = f" {_normalize_label(raw)} "
    best: Optional[tuple[int, str]] = None
    for target_id, spec in specs.items():
        for alias in (target_id, *spec.get("aliases", ())):
            label = _normalize_label(alias)
            if label and f" {label} " in padded:
                if best is None or len(label) > best[0]:
                    best = (len(label), target_id)
    return best[1] if best else None


def normalize_target_id(
    raw: Optional[str],
    default: str = DEFAULT_TARGET,
    specs: Optional[dict[str, dict[str, Any]]] = None,
) -> str:
    """
    Map free-form target input to a canonical identifier.

    trim → collapse whitespace → punctuation to spaces → uppercase →
    longest alias matched on word boundaries → default.

    Examples:
        "  u.s. dept of commerce " → "DOC"
        "Army Corps of Engineers" → "USACE"
        "unknown agency"          → "DOC" (with a warning)
    """
    target_id = match_target(raw, specs)
    if target_id is None:
        logger.warning(f"No target match for {raw!r}, defaulting to {default}")
        return default
    logger.debug(f"TARGET: {raw!r} → {target_id} ({target_full_name(target_id, specs)})")
    return target_id


def build_profile(
    target_id: str,
    spec: Optional[dict[str, Any]] = None,
) -> DistillationProfile:
    """
    Construct a fresh profile for a target.

    Raises:
        pydantic.ValidationError: when the spec holds invalid values
            (e.g. scoring weights summing above 1.0)
    """
    target_id = target_id.strip().upper()
    if spec is None:
        spec = TARGET_SPECS.get(target_id, {})
    data: dict[str, Any] = copy.deepcopy(spec)

    signals = data.pop("signals", {}) or {}
    data["signals"] = SignalLists(
        priority_high=tuple(signals.get("priority_high", ())),
        priority_med=tuple(signals.get("priority_med", ())),
        universal=tuple(signals.get("universal", UNIVERSAL_SIGNALS)),
    )
    data.setdefault("filter_patterns", DEFAULT_FILTER_PATTERNS)
    data.setdefault("mandatory_themes", MANDATORY_THEMES)
    data.setdefault("theme_dictionaries", THEME_CATALOG)
    data.setdefault("theme_heuristics", THEME_HEURISTICS)

    return DistillationProfile(target_id=target_id, **data)


def build_default_profile(default: str = DEFAULT_TARGET) -> DistillationProfile:
    return build_profile(default)


def load_profiles(path: Path) -> dict[str, dict[str, Any]]:
    """
    Load target specs from a JSON file and merge them over the built-ins.

    The file maps target ids to spec objects; keys of a built-in target
    that the file does not mention keep their built-in values.

    Raises:
        FileNotFoundError: when the file does not exist
        ValueError: when the file is not a JSON object
    """
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, dict):
        raise ValueError(f"Profiles file {path} must contain a JSON object")

    merged = copy.deepcopy(TARGET_SPECS)
    for target_id, override in raw.items():
        if not isinstance(override, dict):
            raise ValueError(f"Profile {target_id!r} in {path} must be an object")
        key = target_id.strip().upper()
        merged[key] = {**merged.get(key, {}), **override}

    # Validate eagerly so bad files fail before any run starts
    for target_id, spec in merged.items():
        build_profile(target_id, spec)

    logger.info(f"Loaded {len(raw)} profile(s) from {path}")
    return merged


def resolve_profile(
    raw_target: Optional[str],
    default: str = DEFAULT_TARGET,
    specs: Optional[dict[str, dict[str, Any]]] = None,
) -> tuple[DistillationProfile, list[str]]:
    """
    Normalize a raw target string and build its profile.

    Unknown targets fall back to the default profile.

    Returns:
        (profile, notes) where notes carry any fallback warning
    """
    specs = specs or TARGET_SPECS
    notes: list[str] = []
    target_id = match_target(raw_target, specs)

    if target_id is None and not (raw_target or "").strip():
        target_id = default.upper()
    elif target_id is None:
        target_id = default.upper()
        notes.append(f"Target {raw_target!r} not recognized; using default profile {target_id}")
        logger.warning(notes[-1])

    return build_profile(target_id, specs.get(target_id, {})), notes
