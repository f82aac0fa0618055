from fastapi import APIRouter

from hims.api.v1.appointments import routes as appointments
from hims.api.v1.auth import routes as auth
from hims.api.v1.billing import routes as billing
from hims.api.v1.catalog import routes as catalog
from hims.api.v1.diagnostics import routes as diagnostics
from hims.api.v1.ipd import routes as ipd
from hims.api.v1.mortuary import routes as mortuary
from hims.api.v1.patients import routes as patients
from hims.api.v1.pharmacy import routes as pharmacy
from hims.api.v1.reports import routes as reports
from hims.api.v1.store import routes as store
from hims.api.v1.theatres import routes as theatres
from hims.api.v1.visits import routes as visits
from hims.api.v1.wards import routes as wards

api_router = APIRouter()
api_router.include_router(auth.router)
api_router.include_router(auth.users_router)
api_router.include_router(auth.staff_router)
api_router.include_router(patients.router)
api_router.include_router(appointments.router)
api_router.include_router(visits.router)
api_router.include_router(visits.queue_router)
api_router.include_router(diagnostics.lab_router)
api_router.include_router(diagnostics.radiology_router)
api_router.include_router(catalog.router)
api_router.include_router(catalog.pricing_router)
api_router.include_router(billing.router)
api_router.include_router(pharmacy.stock_router)
api_router.include_router(pharmacy.dispensing_router)
api_router.include_router(pharmacy.direct_router)
api_router.include_router(store.requisitions_router)
api_router.include_router(store.receiving_router)
api_router.include_router(store.incoming_router)
api_router.include_router(mortuary.cabinets_router)
api_router.include_router(mortuary.corpses_router)
api_router.include_router(mortuary.releases_router)
api_router.include_router(wards.wards_router)
api_router.include_router(wards.beds_router)
api_router.include_router(theatres.theatres_router)
api_router.include_router(theatres.procedures_router)
api_router.include_router(ipd.router)
api_router.include_router(reports.dashboard_router)
api_router.include_router(reports.router)
