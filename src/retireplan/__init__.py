"""retireplan: year-by-year retirement tax and withdrawal projections."""

__version__ = "0.3.0"

from retireplan.analytics.summary import ProjectionSummary as ProjectionSummary
from retireplan.analytics.summary import ScenarioComparison as ScenarioComparison
from retireplan.analytics.summary import compare as compare
from retireplan.analytics.summary import summarize as summarize
from retireplan.config.defaults import default_profile as default_profile
from retireplan.config.defaults import default_scenario as default_scenario
from retireplan.config.schema import ConversionWindow as ConversionWindow
from retireplan.config.schema import HouseholdProfile as HouseholdProfile
from retireplan.config.schema import MarriedHousehold as MarriedHousehold
from retireplan.config.schema import MemberPlan as MemberPlan
from retireplan.config.schema import Person as Person
from retireplan.config.schema import RothConversionConfig as RothConversionConfig
from retireplan.config.schema import SingleHousehold as SingleHousehold
from retireplan.config.schema import TaxScenarioInputs as TaxScenarioInputs
from retireplan.core.engine import EngineStatus as EngineStatus
from retireplan.core.engine import ProjectionEngine as ProjectionEngine
from retireplan.core.engine import project as project
from retireplan.core.engine import project_baseline_and_optimized as project_baseline_and_optimized
from retireplan.core.results import ProjectionResult as ProjectionResult
from retireplan.core.results import YearlyProjectionResult as YearlyProjectionResult
from retireplan.taxes.law import PackageTaxLawProvider as PackageTaxLawProvider
from retireplan.taxes.law import YearlyTaxLawTable as YearlyTaxLawTable
