"""Configuration of the Eurostag export/import module.

This module provides the `DdExportConfig` class holding the options used when
exporting grid data to, or importing it from, Eurostag. Options are read from
two sections of the platform configuration:

- `ddImportExport`: automaton, RST and ACMC toggles, regulation entity names,
  load pattern coefficients and the generator PQ filter.
- `eurostag-ech-export`: the main connected component and no-switch export
  flags.

Any option missing from its section, and every option of a missing section,
takes its default value.

Typical usage example:

    from gridsample_tools.config import DdExportConfig

    config = DdExportConfig.load()
    if config.import_export_rst:
        print(config.rst_regul_generator)
"""

from .platform import PlatformConfig

from dataclasses import dataclass, fields


MODULE_NAME = "ddImportExport"
ECH_EXPORT_MODULE_NAME = "eurostag-ech-export"


@dataclass
class DdExportConfig:
    """Options of the Eurostag export/import module.

    The configuration key of each field is listed in `DD_IMPORT_EXPORT_KEYS`
    or `ECH_EXPORT_KEYS`, depending on the section holding it. Field values
    are not validated: any string or float accepted by the configuration
    source is kept as-is.

    Attributes:
        automaton_a11 (bool): Export the A11 automaton. Defaults to False.
        automaton_a12 (bool): Export the A12 automaton. Defaults to False.
        automaton_a14 (bool): Export the A14 automaton. Defaults to False.
        import_export_rst (bool): Import/export RST regulations. Defaults to False.
        import_export_acmc (bool): Import/export ACMC regulations. Defaults to False.
        lv_load_modeling (bool): Model loads on the LV side. Defaults to False.
        rst_regul_injector (str): RST injector regulation name. Defaults to "RSTN_PCA".
        rst_regul_generator (str): RST generator regulation name. Defaults to "APRTH1".
        rst_regul_generator_delete (str): Generator regulation replaced by RST.
            Defaults to "CONSIG".
        acmc_regul (str): ACMC regulation name. Defaults to "ACMC".
        rst_pilot_generators (str): RST pilot generators. Defaults to "".
        load_pattern_alpha (float): Load pattern alpha coefficient. Defaults to 1.0.
        load_pattern_beta (float): Load pattern beta coefficient. Defaults to 2.0.
        gens_pq_filter (bool): Filter generators on their PQ values. Defaults to False.
        export_main_cc_only (bool): Export the main connected component only.
            Defaults to False.
        no_switch (bool): Export without switches. Defaults to False.
    """

    automaton_a11: bool = False
    automaton_a12: bool = False
    automaton_a14: bool = False
    import_export_rst: bool = False
    import_export_acmc: bool = False
    lv_load_modeling: bool = False
    rst_regul_injector: str = "RSTN_PCA"
    rst_regul_generator: str = "APRTH1"
    rst_regul_generator_delete: str = "CONSIG"
    acmc_regul: str = "ACMC"
    rst_pilot_generators: str = ""
    load_pattern_alpha: float = 1.0
    load_pattern_beta: float = 2.0
    gens_pq_filter: bool = False
    export_main_cc_only: bool = False
    no_switch: bool = False

    # (field name, configuration key) per section
    DD_IMPORT_EXPORT_KEYS = (
        ("automaton_a11", "automatonA11"),
        ("automaton_a12", "automatonA12"),
        ("automaton_a14", "automatonA14"),
        ("import_export_rst", "importExportRST"),
        ("import_export_acmc", "importExportACMC"),
        ("lv_load_modeling", "LVLoadModeling"),
        ("rst_regul_injector", "RSTRegulInjector"),
        ("rst_regul_generator", "RSTRegulGenerator"),
        ("rst_regul_generator_delete", "RSTRegulGeneratorDelete"),
        ("acmc_regul", "ACMCRegul"),
        ("rst_pilot_generators", "RSTPilotGenerators"),
        ("load_pattern_alpha", "loadPatternAlpha"),
        ("load_pattern_beta", "loadPatternBeta"),
        ("gens_pq_filter", "gensPQfilter"),
    )
    ECH_EXPORT_KEYS = (
        ("export_main_cc_only", "exportMainCCOnly"),
        ("no_switch", "noSwitch"),
    )

    @classmethod
    def load(cls, platform_config: PlatformConfig = None):
        """Load the export configuration from the platform configuration.

        Args:
            platform_config (PlatformConfig, optional): Configuration source.
                Defaults to `PlatformConfig.default_config()`.

        Returns:
            DdExportConfig: Fully populated configuration record.

        Raises:
            ConfigurationError: If a present value cannot be coerced to the
                option's type.
        """
        if platform_config is None:
            platform_config = PlatformConfig.default_config()

        defaults = cls()
        values = {}
        for module_name, keys in (
            (MODULE_NAME, cls.DD_IMPORT_EXPORT_KEYS),
            (ECH_EXPORT_MODULE_NAME, cls.ECH_EXPORT_KEYS),
        ):
            if not platform_config.module_exists(module_name):
                continue
            module = platform_config.get_module_config(module_name)
            for attr, key in keys:
                default = getattr(defaults, attr)
                if isinstance(default, bool):
                    values[attr] = module.get_bool_property(key, default)
                elif isinstance(default, float):
                    values[attr] = module.get_float_property(key, default)
                else:
                    values[attr] = module.get_string_property(key, default)

        return cls(**values)

    # RST and ACMC share a single flag for import and export
    @property
    def export_rst(self) -> bool:
        return self.import_export_rst

    @property
    def import_rst(self) -> bool:
        return self.import_export_rst

    @property
    def export_acmc(self) -> bool:
        return self.import_export_acmc

    @property
    def import_acmc(self) -> bool:
        return self.import_export_acmc

    def to_dict(self) -> dict:
        """Return the options keyed by their configuration key names."""
        keys = dict(self.DD_IMPORT_EXPORT_KEYS + self.ECH_EXPORT_KEYS)
        return {keys[f.name]: getattr(self, f.name) for f in fields(self)}
