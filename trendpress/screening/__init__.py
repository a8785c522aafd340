"""Risk and quality gates applied to generated drafts."""
