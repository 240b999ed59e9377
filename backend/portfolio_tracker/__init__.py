"""Portfolio tracker: holdings valuation, currency conversion and dividend estimates."""
