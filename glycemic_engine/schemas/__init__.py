# Result schemas
