class SparqlBuilder:
    """Accumulates output variables and graph patterns for one SELECT query."""

    def __init__(self):
        self.out_params = []
        self.query_terms = []

    def add_out_param(self, name):
        if not name:
            raise ValueError("Output variable name is required.")
        if name not in self.out_params:
            self.out_params.append(name)

    def add_query_term(self, term):
        if not term:
            raise ValueError("Query term is required.")
        self.query_terms.append(term)

    def add_optional_query_term(self, term):
        if not term:
            raise ValueError("Query term is required.")
        self.query_terms.append(f"OPTIONAL{{{term}}}")

    def add_values(self, var, values):
        self.add_query_term(f"VALUES {var}{{{' '.join(values)}}}")

    def add_wikibase_label(self, lang=None):
        lang = lang or "mul"
        self.add_query_term(f'SERVICE wikibase:label{{bd:serviceParam wikibase:language "{lang}".}}')

    @staticmethod
    def _time_pattern(term, value_var, time_var, precision_var):
        return (
            f"{term} {value_var} wikibase:timeValue {time_var}. "
            f"{value_var} wikibase:timePrecision {precision_var}."
        )

    def add_time_term(self, term, value_var, time_var, precision_var):
        self.add_out_param(time_var)
        self.add_out_param(precision_var)
        self.add_query_term(self._time_pattern(term, value_var, time_var, precision_var))

    def add_optional_time_term(self, term, value_var, time_var, precision_var):
        self.add_out_param(time_var)
        self.add_out_param(precision_var)
        self.add_optional_query_term(self._time_pattern(term, value_var, time_var, precision_var))

    def build(self):
        if not self.out_params or not self.query_terms:
            raise ValueError("A query needs at least one output variable and one term.")
        return f"SELECT {' '.join(self.out_params)} WHERE{{{' '.join(self.query_terms)}}}"
