"""
Biomass, carbon and MRV package constants.
"""

# IPCC default: 47% of dry biomass is carbon
CARBON_FRACTION = 0.47

# CO2 / C molecular weight ratio (44 / 12)
CO2_MOLECULAR_RATIO = 3.67

# Conversion: 1 Carbon Credit = 1 metric tonne CO2e
TONNES_PER_CREDIT = 1.0
KG_PER_TONNE = 1000.0

# Generic allometry (Chave et al. 2014) used when a species is unknown
DEFAULT_WOOD_DENSITY = 0.6
DEFAULT_ALLOMETRIC_A = 0.0673
DEFAULT_ALLOMETRIC_B = 0.976
DEFAULT_SPECIES_UNCERTAINTY_PCT = 25.0

# Estimates never go below this
MIN_BIOMASS_KG = 0.1

# Placeholder empirical factors, not derived from published allometry
CROWN_TO_DBH_RATIO = 80.0
HEIGHT_ONLY_EXPONENT = 2.5
HEIGHT_ONLY_FACTOR = 2.5
CROWN_AREA_FACTOR = 15.0

# Confidence per method (full allometric without species data)
GENERIC_ALLOMETRIC_CONFIDENCE = 75.0
CROWN_ESTIMATED_CONFIDENCE = 60.0
HEIGHT_ONLY_CONFIDENCE = 40.0
CROWN_AREA_CONFIDENCE = 35.0
DEFAULT_METHOD_UNCERTAINTY_PCT = 30.0

CREDIT_METHODOLOGY = "IPCC 2006 Guidelines + Voluntary Carbon Market Standards"
DEFAULT_MARKET_NAME = "Voluntary Carbon Market"
DEFAULT_MARKET_SOURCE = "Market Average"

# MRV package layout
MRV_SCHEMA_VERSION = "1.0"
MRV_METHOD_NAME = "Agroforestry Carbon Stock Estimator"
MRV_UNCERTAINTY_APPROACH = "fixed-uncertainty MVP"
MRV_UNCERTAINTY_VALUE = 0.20
MRV_PROVENANCE_APP = "agro-mrv"
PACKAGES_DIR = "packages"
PACKAGE_PREFIX = "mrv_pkg"

INPUTS_FILE = "inputs/trees.json"
OUTPUTS_FILE = "outputs/estimates.json"
MANIFEST_FILE = "manifest.json"
SUMMARY_FILE = "reports/summary.md"
CHECKSUMS_FILE = "checksums.json"

# Registry export bundle
EXPORT_SCHEMA_VERSION = "1.0"
EXPORT_PLOT_CSV = "plot_summary.csv"
EXPORT_TREES_CSV = "tree_level.csv"
EXPORT_README_FILE = "README.md"
EXPORT_README = """# Data Dictionary
- plot_summary.csv: one row per plot
- tree_level.csv: one row per tree

Units:
- heightM (m), dbhCm (cm), crownAreaM2 (m^2)
- agbKg (kg), carbonKg (kg); totals in tons in plot_summary

Timestamps are ISO 8601 (UTC).
"""
