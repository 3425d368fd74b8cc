"""JSON label catalogues, one file per locale."""
