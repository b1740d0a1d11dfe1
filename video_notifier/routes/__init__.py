"""HTTP routes: worker control and video event ingestion."""
