"""Infrastructure layer: persistence of tax rates and taxable records.

Key responsibilities:
- **Database access**: Async PostgreSQL with SQLAlchemy 2.0+
- **Rate loading**: Building ``RateTable`` snapshots from the ``tax_rates`` table
- **Flush hook**: Converting staged taxed amounts before they are written
"""
