"""Per-quantity statistics of a sampled batch and their CSV export.

`analyze_samples` returns a `StatsResults`; `save` writes it out as one CSV
table per sampled quantity:

    stats = analyze_samples(batch, generators_ids, loads_ids)
    stats['loads_q'].loc['ci_high', 'L1']
    stats.save('/results/sampling')  # loads_q.csv, generators_p.csv, ...
"""

import pandas as pd
import os


class StatsResults(dict[str, pd.DataFrame]):
    """
    Statistics tables keyed by sampled quantity.

    Keys are the frame names produced by `SampledData.to_frames`
    ('generators_p', 'loads_p', 'loads_q'). In each table the index holds the
    statistic ('mean', 'stddev', 'min_val', 'max_val', 'ci_low', 'ci_high')
    and the columns hold the element ids, in sampling order.
    """

    def save(self, directory: str):
        """
        Write `<quantity>.csv` into `directory` for every table.

        The index is written under the header "statistic", so a table reads
        back with `pd.read_csv(path, index_col="statistic")`. Files already
        present are replaced; `directory` is not created.

        Args:
            directory (str): Existing output directory.
        """
        for quantity, data in self.items():
            data.to_csv(
                os.path.join(directory, f"{quantity}.csv"),
                index_label="statistic"
            )
