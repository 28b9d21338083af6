"""
Reconcile projections manually: fill missing periods and recompute totals.

Usage:
    DATABASE_URL=postgresql://... python run_reconcile.py [account_id]
"""
import sys
import traceback

from famfin.application.aggregator import RecomputeProjectionUseCase
from famfin.application.materializer import MaterializeProjectionsUseCase
from famfin.application.source_periods import EnsureSourcePeriodsUseCase, UpdateCurrentPeriodsUseCase
from famfin.infrastructure.db.models import ObligationModel, PeriodProjection
from famfin.infrastructure.db.session import get_db

db = next(get_db())
account_id = int(sys.argv[1]) if len(sys.argv) > 1 else None

try:
    print("Ensuring source periods...")
    EnsureSourcePeriodsUseCase(db).execute()
    UpdateCurrentPeriodsUseCase(db).execute()

    query = db.query(ObligationModel.id).filter(ObligationModel.is_active.is_(True))
    if account_id is not None:
        query = query.filter(ObligationModel.account_id == account_id)
    obligation_ids = [row[0] for row in query.order_by(ObligationModel.id.asc()).all()]

    print(f"Materializing {len(obligation_ids)} obligations...")
    bulk = MaterializeProjectionsUseCase(db).execute_many(obligation_ids)
    print(f"✓ created={bulk.created} succeeded={bulk.succeeded} failed={bulk.failed}")
    for error in bulk.errors:
        print(f"  - {error}")

    projection_query = db.query(PeriodProjection.id)
    if account_id is not None:
        projection_query = projection_query.filter(PeriodProjection.account_id == account_id)
    projection_ids = [row[0] for row in projection_query.all()]

    print(f"Recomputing {len(projection_ids)} projections...")
    summary = RecomputeProjectionUseCase(db).execute_many(projection_ids)
    print(f"✓ recomputed={len(summary.recomputed)} failed={len(summary.failed)}")
    for projection_id, message in sorted(summary.failed.items()):
        print(f"  - {projection_id}: {message}")

except Exception as e:
    print(f"✗ ERROR: {e}")
    traceback.print_exc()

finally:
    db.close()
